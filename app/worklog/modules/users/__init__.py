"""
Users module: company user administration plus the self-service profile endpoints.
"""
