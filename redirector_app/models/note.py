import uuid

from sqlalchemy import Column, ForeignKey, Text, Uuid

from redirector_app.database.connection import Base
from .mixins import SoftDeleteMixin, TimestampMixin


class Note(TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "notes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    destination_id = Column(Uuid, ForeignKey("destinations.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
