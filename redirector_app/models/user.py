import uuid

from sqlalchemy import Column, Enum, String, Uuid

from redirector_app.database.connection import Base
from .enums import UserRole, enum_values
from .mixins import SoftDeleteMixin, TimestampMixin


class User(TimestampMixin, SoftDeleteMixin, Base):
    """
    Operator account.

    session_id is embedded in every issued token; rotating it invalidates
    all outstanding tokens without a revocation list.
    The username constraint ignores deleted_at, so deleted usernames stay reserved.
    """
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id = Column(Uuid, nullable=False, default=uuid.uuid4)
    username = Column(String, nullable=False, unique=True, index=True)
    hashed_password = Column(String, nullable=False)
    role = Column(
        Enum(UserRole, name="user_role_type", values_callable=enum_values),
        nullable=False,
    )

    def rotate_session(self):
        self.session_id = uuid.uuid4()
