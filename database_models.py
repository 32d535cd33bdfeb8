import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime

from database import Base


def utcnow() -> datetime:
    """Current time as naive UTC, the form every timestamp column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_user_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    User model holding the per-user usage ledger.
    Rows are created lazily on first successful sign-in and never deleted.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_user_id)
    email = Column(String, unique=True, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    request_count = Column(Integer, default=0, nullable=False)
    last_login = Column(DateTime, nullable=True)
    paid_until = Column(DateTime, nullable=True)
