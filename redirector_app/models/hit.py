import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid

from redirector_app.database.connection import Base
from .mixins import utcnow


class Hit(Base):
    """
    A recorded visit. Append-only.

    Rows are written by the hit worker, so created_at is taken from the hit
    event (moment of the visit) rather than from insert time.
    """
    __tablename__ = "hits"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    destination_id = Column(Uuid, ForeignKey("destinations.id"), nullable=False, index=True)
    alias_id = Column(Uuid, ForeignKey("aliases.id"), nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
