"""
gitvis - extract a repository's commit/tree/blob graph for visualization.
"""

__version__ = "1.0.0"
