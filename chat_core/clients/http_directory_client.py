import logging
from typing import Optional
from uuid import UUID

import httpx

from chat_core.clients.base_directory_client import BaseDirectoryClient
from chat_core.clients.cache import LRUCache
from chat_core.errors import NotFound, Unavailable
from chat_core.models.api.participants import UserSummary

logger = logging.getLogger(__name__)


class HttpDirectoryClient(BaseDirectoryClient):
    """Participant directory backed by the identity/friendship service, using httpx."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        cache_size: int = 1000,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.users: LRUCache[UUID, UserSummary] = LRUCache(max_size=cache_size)
        self._transport = transport

    async def resolve_user(self, user_id: UUID) -> UserSummary:
        """Fetch a user summary, served from the LRU cache when possible."""
        cached = self.users.get(user_id)
        if cached is not None:
            return cached

        response = await self._get(f"/users/{user_id}")
        if response.status_code == 404:
            raise NotFound(f"User {user_id} not found")
        data = response.json()

        user = UserSummary(
            id=data.get("id", user_id),
            username=data["username"],
            display_name=data.get("display_name"),
            avatar_url=data.get("avatar_url"),
        )
        self.users.put(user_id, user)
        return user

    async def can_message(self, user_a: UUID, user_b: UUID) -> bool:
        """Ask the relationship service whether the pair may message each other.

        Block status is never cached; a block must take effect immediately.
        """
        response = await self._get(f"/relationships/{user_a}/{user_b}")
        if response.status_code == 404:
            raise NotFound(f"Relationship between {user_a} and {user_b} not found")
        return bool(response.json().get("can_message", False))

    async def _get(self, path: str) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=5.0
            ) as client:
                response = await client.get(f"{self.base_url}{path}", headers=headers)
                if response.status_code != 404:
                    response.raise_for_status()
                return response
        except httpx.HTTPError as e:
            logger.warning("Directory request %s failed: %s", path, e)
            raise Unavailable("Participant directory unavailable") from e
