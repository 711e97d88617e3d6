import uuid

from sqlalchemy import Boolean, Column, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from redirector_app.database.connection import Base
from .mixins import SoftDeleteMixin, TimestampMixin


class Destination(TimestampMixin, SoftDeleteMixin, Base):
    """
    A slug -> URL redirect.

    slug never changes after creation; is_permanent only moves false -> true,
    and once permanent the url is frozen.
    """
    __tablename__ = "destinations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    slug = Column(String, ForeignKey("slugs.slug"), nullable=False, unique=True, index=True)
    url = Column(String, nullable=False)
    is_permanent = Column(Boolean, nullable=False, default=False)
    forward_query_parameters = Column(Boolean, nullable=False, default=False)

    aliases = relationship("Alias", back_populates="destination", lazy="select")
