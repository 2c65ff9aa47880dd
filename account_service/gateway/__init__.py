"""
API gateway: forwards public /account requests to the account service.
"""
