"""
Application constants.
"""

PROJECT_NAME = "codemode-gateway"
API_V1_STR = "/api/v1"
TOKEN_HEADER = "x-codemode-token"
