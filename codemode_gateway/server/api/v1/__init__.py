"""
Version 1 of the gateway HTTP API.
"""
