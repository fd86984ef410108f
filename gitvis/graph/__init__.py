"""
Object graph storage and export.
"""
