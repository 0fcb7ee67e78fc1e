"""
User Directory - resolve notification recipients and store their push tokens.
"""

from typing import Optional
import logging

from dymek.core.exceptions import NotFoundError, ValidationError
from dymek.db.record_store import RecordStore
from dymek.models.common import utc_now
from dymek.models.user import User

logger = logging.getLogger(__name__)


class UserDirectory:
    """
    Users keyed by user_id (no range key).
    """

    def __init__(self, store: RecordStore):
        self.store = store

    async def get_user(self, user_id: str) -> User:
        """
        Get a user by id.

        Raises:
            NotFoundError: if the user has never registered
        """
        if not user_id:
            raise ValidationError("user_id is required", field="user_id")

        item = await self.store.get(user_id)
        if item is None:
            raise NotFoundError(f"User {user_id} not found")
        logger.debug(f"Loaded user {user_id}")
        return User.from_item(item)

    async def update_or_create_user(self, user_id: str, registration_token: Optional[str] = None) -> User:
        """
        Create the user or replace its registration token.

        Args:
            user_id: User identifier
            registration_token: Push token of the user's device (None clears it)

        Returns:
            The stored user
        """
        if not user_id:
            raise ValidationError("Can not create user without ID", field="user_id")

        user = User(user_id=user_id, registration_token=registration_token, updated_at=utc_now())
        await self.store.put(user.to_item())
        logger.info(f"User {user_id} registered (token {'set' if registration_token else 'cleared'})")
        return user
