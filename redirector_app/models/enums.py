"""
Closed enumerations stored as database enum columns.
"""

import enum


class UserRole(str, enum.Enum):
    """User roles; admins manage users, managers manage redirects"""
    ADMIN = "admin"
    MANAGER = "manager"

    def is_allowed(self, required: "UserRole") -> bool:
        """Admins pass every check, managers only manager-level ones"""
        return self is UserRole.ADMIN or required is UserRole.MANAGER


class AuditEntryType(str, enum.Enum):
    """Every mutating action that lands on the audit trail"""
    CREATE_USER = "create-user"
    CHANGE_PASSWORD = "change-password"
    DELETE_USER = "delete-user"
    CREATE_DESTINATION = "create-destination"
    UPDATE_DESTINATION = "update-destination"
    DELETE_DESTINATION = "delete-destination"
    CREATE_ALIAS = "create-alias"
    DELETE_ALIAS = "delete-alias"
    CREATE_NOTE = "create-note"
    UPDATE_NOTE = "update-note"
    DELETE_NOTE = "delete-note"


def enum_values(enum_class):
    """Persist enum values (kebab-case strings), not member names"""
    return [member.value for member in enum_class]
