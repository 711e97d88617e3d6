from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func

from redirector_app.database.connection import Base


class ClaimedSlug(Base):
    """
    Every slug ever claimed by a destination or an alias.

    Rows are never deleted, so the primary key is the namespace-wide uniqueness
    constraint: live slugs and burned (deleted) slugs alike can not be claimed twice.
    """
    __tablename__ = "slugs"

    slug = Column(String, primary_key=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
