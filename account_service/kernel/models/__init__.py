"""
SQLAlchemy models for the account service.
"""

from account_service.kernel.models.base import Base, TimestampMixin, as_utc, generate_uuid
from account_service.kernel.models.user import User

__all__ = [
    "Base",
    "TimestampMixin",
    "as_utc",
    "generate_uuid",
    "User",
]
