"""
HTTP API for the session service.
"""
