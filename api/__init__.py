"""
HTTP API package for the Tidemark baseline engine.
"""
