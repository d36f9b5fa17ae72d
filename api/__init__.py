"""
HTTP API for the Restaurant Image Gateway.
"""
