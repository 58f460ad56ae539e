"""
User Service

Upsert-by-email for the sign-in flow. A user's first upsert also credits the
initial token grant in the same transaction.
"""
import logging
from typing import Optional
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from swap import config
from swap.database import AsyncSessionLocal
from swap.models.user import User
from swap.models.token_ledger import LedgerReason
from swap.services.errors import NotFound, ValidationError
from swap.services.ledger import Ledger, get_ledger

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("name", "university", "timezone", "image")


def normalize_email(email: Optional[str]) -> str:
    """Emails are unique case-insensitively; store and compare lower-cased"""
    if email is None or "@" not in email or not email.strip():
        raise ValidationError("A valid email is required.", details={"email": email})
    return email.strip().lower()


async def find_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def require_user(db: AsyncSession, email: str) -> User:
    user = await find_user_by_email(db, email)
    if user is None:
        raise NotFound(f"No user with email {normalize_email(email)}")
    return user


class UserService:
    """Creates and updates users by email"""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        ledger: Optional[Ledger] = None,
    ):
        self.session_factory = session_factory or AsyncSessionLocal
        self.ledger = ledger or get_ledger()

    async def upsert(self, email: str, **profile) -> User:
        """
        Create the user on first sight, otherwise update supplied profile fields.

        None values leave the stored field untouched.
        """
        email = normalize_email(email)
        updates = {k: v for k, v in profile.items() if k in PROFILE_FIELDS and v is not None}

        try:
            return await self._upsert(email, updates)
        except IntegrityError:
            # Concurrent first sign-in created the row; retry as an update
            logger.info(f"Concurrent creation of {email}, retrying as update")
            return await self._upsert(email, updates)

    async def _upsert(self, email: str, updates: dict) -> User:
        async with self.session_factory() as db:
            async with db.begin():
                user = await find_user_by_email(db, email)
                if user is not None:
                    for field, value in updates.items():
                        setattr(user, field, value)
                    await db.flush()
                    return user

                user = User(email=email, token_balance=0, **updates)
                db.add(user)
                await db.flush()

                if config.INITIAL_TOKEN_GRANT > 0:
                    await self.ledger.credit(
                        db, user.id, config.INITIAL_TOKEN_GRANT, LedgerReason.INITIAL_GRANT
                    )
                    await db.refresh(user)

                logger.info(f"Created user {email} with {user.token_balance} initial tokens")
                return user

    async def get(self, email: str) -> User:
        async with self.session_factory() as db:
            return await require_user(db, email)


# Singleton instance
_user_service_instance: Optional[UserService] = None


def get_user_service() -> UserService:
    """Get singleton instance of UserService"""
    global _user_service_instance
    if _user_service_instance is None:
        _user_service_instance = UserService()
    return _user_service_instance
