"""
Storefront account service.

Identity microservice (registration, login, password management, guest
tokens) and the API gateway that fronts it.
"""

__version__ = "1.0.0"
