"""
Password hashing and bearer token signing.

Both codecs are pure: no state besides what is passed to their constructors.
"""

from .passwords import PasswordCodec, generate_password
from .tokens import IssuedToken, TokenClaims, TokenCodec

__all__ = [
    "PasswordCodec",
    "generate_password",
    "IssuedToken",
    "TokenClaims",
    "TokenCodec",
]
