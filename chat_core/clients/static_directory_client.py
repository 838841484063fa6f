from typing import Dict, Iterable, Optional, Set, Tuple
from uuid import UUID

from chat_core.clients.base_directory_client import BaseDirectoryClient
from chat_core.errors import NotFound
from chat_core.models.api.participants import UserSummary


class StaticDirectoryClient(BaseDirectoryClient):
    """In-process directory for development and tests.

    With ``users=None`` the directory is open: every id resolves to a
    placeholder summary. Otherwise only listed users exist.
    """

    def __init__(
        self,
        users: Optional[Iterable[UserSummary]] = None,
        blocked: Iterable[Tuple[UUID, UUID]] = (),
    ):
        self.users: Optional[Dict[UUID, UserSummary]] = (
            {user.id: user for user in users} if users is not None else None
        )
        self.blocked: Set[frozenset] = {frozenset(pair) for pair in blocked}

    def add_user(self, user: UserSummary) -> None:
        if self.users is None:
            self.users = {}
        self.users[user.id] = user

    def block(self, user_a: UUID, user_b: UUID) -> None:
        self.blocked.add(frozenset((user_a, user_b)))

    def unblock(self, user_a: UUID, user_b: UUID) -> None:
        self.blocked.discard(frozenset((user_a, user_b)))

    async def resolve_user(self, user_id: UUID) -> UserSummary:
        if self.users is None:
            return UserSummary(id=user_id, username=f"user-{str(user_id)[:8]}")
        try:
            return self.users[user_id]
        except KeyError:
            raise NotFound(f"User {user_id} not found") from None

    async def can_message(self, user_a: UUID, user_b: UUID) -> bool:
        return frozenset((user_a, user_b)) not in self.blocked
