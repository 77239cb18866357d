"""User data access layer."""

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models import User
from app.services.repositories.exceptions import NotFoundError


class UserRepository:
    """Centralized user data access.

    Naming conventions:
    - find_* : Query that may return None
    - get_* : Query that raises exception if missing
    - *_setting helpers : fall back to the configured default
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def find_by_id(self, user_id: str) -> User | None:
        """Find user by primary key."""
        return await self._db.get(User, user_id)

    async def get_by_id(self, user_id: str) -> User:
        """Get user by primary key, raising NotFoundError if missing."""
        user = await self.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    async def timezone_setting(self, user_id: str) -> str:
        """IANA timezone of the user, ``settings.default_timezone`` when unset or unknown."""
        user = await self.find_by_id(user_id)
        if user is None or not user.timezone:
            return settings.default_timezone
        return user.timezone

    async def currency_setting(self, user_id: str) -> str:
        """Preferred display currency, ``settings.default_currency`` when unset or unknown."""
        user = await self.find_by_id(user_id)
        if user is None or not user.currency:
            return settings.default_currency
        return user.currency.upper()
