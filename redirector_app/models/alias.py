import uuid

from sqlalchemy import Column, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from redirector_app.database.connection import Base
from .mixins import SoftDeleteMixin, TimestampMixin


class Alias(TimestampMixin, SoftDeleteMixin, Base):
    """A secondary slug resolving through a destination (same slug namespace)"""
    __tablename__ = "aliases"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    slug = Column(String, ForeignKey("slugs.slug"), nullable=False, unique=True, index=True)
    destination_id = Column(Uuid, ForeignKey("destinations.id"), nullable=False, index=True)

    destination = relationship("Destination", back_populates="aliases")
