"""
Password hashing utilities using bcrypt.
"""

import secrets
from typing import Optional

import bcrypt

# Work factor used when none is configured
DEFAULT_BCRYPT_ROUNDS = 10


class PasswordHasher:
    """Salted one-way password hashing."""

    def __init__(self, rounds: int = DEFAULT_BCRYPT_ROUNDS):
        self.rounds = rounds
        self._dummy_hash: Optional[str] = None

    @property
    def dummy_hash(self) -> str:
        """Hash of a random secret, made once; checked when there is no real hash to compare."""
        if self._dummy_hash is None:
            self._dummy_hash = self.hash(secrets.token_hex(16))
        return self._dummy_hash

    @staticmethod
    def _encode(password: str) -> bytes:
        """
        Encode and truncate to 72 bytes.

        bcrypt only reads the first 72 bytes and bcrypt>=4.1 refuses longer input.
        """
        return password.encode("utf-8")[:72]

    def hash(self, password: str) -> str:
        """
        Hash a password with a fresh salt.

        Args:
            password: Plain text password

        Returns:
            bcrypt hash string ($2b$...)
        """
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(self._encode(password), salt).decode("utf-8")

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        """
        Check a password against a stored hash.

        A malformed hash counts as a mismatch.
        """
        try:
            return bcrypt.checkpw(
                self._encode(plain_password),
                hashed_password.encode("utf-8"),
            )
        except ValueError:
            return False
