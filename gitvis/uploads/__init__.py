"""
Upload handling: archive extraction ahead of parsing.
"""
