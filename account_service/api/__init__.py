"""
HTTP layer of the account service.
"""
