"""
Identity errors.

The service raises these to express business rule violations; the HTTP
routes and the message dispatcher translate them using ``status_code`` and
``code``.
"""


class IdentityError(Exception):
    """Base class for all identity errors."""

    status_code = 500
    code = "identity_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class ConflictError(IdentityError):
    """Username or email already taken."""

    status_code = 409
    code = "conflict"


class NotFoundError(IdentityError):
    """Requested user does not exist."""

    status_code = 404
    code = "not_found"


class UnauthorizedError(IdentityError):
    """Supplied credential or token was rejected."""

    status_code = 401
    code = "unauthorized"


class BadRequestError(IdentityError):
    """Request violates an account rule."""

    status_code = 400
    code = "bad_request"


class PasswordReuseError(BadRequestError):
    """New password is the same as the current one."""

    code = "password_reuse"


class InternalError(IdentityError):
    """Unexpected failure inside the service."""

    status_code = 500
    code = "internal_error"
