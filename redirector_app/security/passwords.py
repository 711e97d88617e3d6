import secrets

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError


def generate_password() -> str:
    """Random password for bootstrap and for users created without one"""
    return secrets.token_urlsafe(18)


class PasswordCodec:
    """Argon2id password hashing"""

    def __init__(self, hasher: PasswordHasher = None):
        self.hasher = hasher or PasswordHasher()

    def hash(self, password: str) -> str:
        return self.hasher.hash(password)

    def verify(self, password: str, hashed_password: str) -> bool:
        try:
            return self.hasher.verify(hashed_password, password)
        except (VerificationError, InvalidHashError):
            return False
