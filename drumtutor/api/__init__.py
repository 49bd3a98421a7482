"""
HTTP API for the drum tutor.
"""
