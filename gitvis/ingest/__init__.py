"""
Repository ingestion.

Locates a repository inside an extracted upload and writes its commit, tree
and blob objects into the graph store.
"""
