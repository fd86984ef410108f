"""
gitvis HTTP API: repository uploads and graph queries.
"""
