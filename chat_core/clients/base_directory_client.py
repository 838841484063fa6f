from abc import ABC, abstractmethod
from uuid import UUID

from chat_core.models.api.participants import UserSummary


class BaseDirectoryClient(ABC):
    """Abstract participant directory: user identity and block status."""

    @abstractmethod
    async def resolve_user(self, user_id: UUID) -> UserSummary:
        """Return the user's summary.

        Raises:
            NotFound: the user does not exist.
            Unavailable: the directory could not be reached.
        """

    @abstractmethod
    async def can_message(self, user_a: UUID, user_b: UUID) -> bool:
        """Return False when either user has blocked the other."""
