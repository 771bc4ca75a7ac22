"""
API routers for the gateway server.
"""
