"""
API payload schemas.
"""
