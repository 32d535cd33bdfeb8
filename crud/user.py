"""
UserRepository for database operations on User model
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update, or_
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from database_models import User, new_user_id, utcnow

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


class UserRepository:
    """
    Repository class for User database operations.
    Every write is a single atomic statement; nothing here reads a row and
    writes back a value derived from it. Callers own the commit.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            db: AsyncSession instance for database operations
        """
        self.db = db

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """
        Retrieve a user by email address.

        Args:
            email: User's email address (case-insensitive search)

        Returns:
            User object if found, None otherwise
        """
        result = await self.db.execute(
            select(User)
            .where(User.email == email.lower())
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        """
        Retrieve a user by ID.

        Args:
            user_id: User's ID

        Returns:
            User object if found, None otherwise
        """
        result = await self.db.execute(
            select(User)
            .where(User.id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, email: str) -> User:
        """
        Return the user with this email, creating it on first sign-in.

        Concurrent first sign-ins for the same email resolve to one row: the
        losing insert is discarded by the unique constraint and both callers
        read back the winner.

        Args:
            email: Email returned by the identity provider

        Returns:
            The existing or newly created User
        """
        email = email.lower()
        user = await self.get_user_by_email(email)
        if user is not None:
            return user

        if await self.insert_if_absent(email):
            logger.info("Created user for %s", email)

        user = await self.get_user_by_email(email)
        if user is None:
            raise RuntimeError(f"User row for {email} missing after insert")
        return user

    async def insert_if_absent(self, email: str) -> bool:
        """
        Insert a fresh ledger row unless one already exists for the email.

        Returns:
            True if this call inserted the row, False if another writer won
        """
        values = {
            "id": new_user_id(),
            "email": email.lower(),
            "created_at": utcnow(),
            "request_count": 0,
        }

        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is not None:
            stmt = insert(User).values(**values).on_conflict_do_nothing(index_elements=["email"])
            result = await self.db.execute(stmt)
            return result.rowcount == 1

        try:
            async with self.db.begin_nested():
                self.db.add(User(**values))
            return True
        except IntegrityError:
            return False

    async def record_allowed_request(self, user_id: str, now: datetime) -> bool:
        """
        Count one accepted request against the user's free quota.

        Args:
            user_id: User's ID
            now: Time of the request, stored as last_login

        Returns:
            True if a row was updated
        """
        result = await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(request_count=User.request_count + 1, last_login=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def extend_paid_until(self, user_id: str, new_expiry: datetime) -> Optional[bool]:
        """
        Move paid_until forward to new_expiry, never backwards.

        Returns:
            True if paid_until changed, False if the current value is already
            at or beyond new_expiry, None if the user does not exist
        """
        result = await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .where(or_(User.paid_until.is_(None), User.paid_until < new_expiry))
            .values(paid_until=new_expiry)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount > 0:
            return True

        exists = await self.db.execute(select(User.id).where(User.id == user_id))
        if exists.scalar_one_or_none() is None:
            return None
        return False
