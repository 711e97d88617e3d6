import uuid

from sqlalchemy import Column, DateTime, Enum, ForeignKey, String, Uuid

from redirector_app.database.connection import Base
from .enums import AuditEntryType, enum_values
from .mixins import utcnow


class AuditTrailEntry(Base):
    """
    One row per mutating action, written in the same transaction as the action.
    Append-only: never updated, never deleted.
    """
    __tablename__ = "audit_trail"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    created_by = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(
        Enum(AuditEntryType, name="audit_trail_entry_type", values_callable=enum_values),
        nullable=False,
    )
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=True)
    destination_id = Column(Uuid, ForeignKey("destinations.id"), nullable=True, index=True)
    alias_id = Column(Uuid, ForeignKey("aliases.id"), nullable=True)
    note_id = Column(Uuid, ForeignKey("notes.id"), nullable=True)
    ip_address = Column(String(45), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
