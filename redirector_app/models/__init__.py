"""
Database models for the redirect service.

Importing this package registers every table with Base.metadata.
"""

from .enums import AuditEntryType, UserRole
from .user import User
from .slug import ClaimedSlug
from .destination import Destination
from .alias import Alias
from .note import Note
from .hit import Hit
from .audit_trail import AuditTrailEntry

__all__ = [
    "AuditEntryType",
    "UserRole",
    "User",
    "ClaimedSlug",
    "Destination",
    "Alias",
    "Note",
    "Hit",
    "AuditTrailEntry",
]
