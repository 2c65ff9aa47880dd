"""
Kernel layer of the account service.

- Identity store (users, credentials, reset tokens)
- Credential hashing and token signing
- Event publication to downstream services

Nothing in this package reads configuration or knows about HTTP.
"""
