from collections import defaultdict
from typing import Any, Dict, List
from uuid import UUID, uuid4

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from chat_core.models.api.messages import ReactionGroup
from chat_core.models.db.reaction_model import ReactionModel
from chat_core.models.db.types import utcnow


class ReactionRepository:
    """Toggle store for emoji reactions keyed by (message, user, emoji).

    Kept apart from the message store: rows churn (inserted and physically
    removed on every toggle) while messages are append-only.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def toggle(self, message_id: UUID, user_id: UUID, emoji: str) -> bool:
        """Remove the reaction if present, otherwise add it.

        Returns True when the reaction now exists.
        """
        query = select(ReactionModel.id).where(
            ReactionModel.message_id == message_id,
            ReactionModel.user_id == user_id,
            ReactionModel.emoji == emoji,
        )
        result = await self.db.execute(query)
        existing_id = result.scalar_one_or_none()

        if existing_id is not None:
            await self.db.execute(
                delete(ReactionModel).where(ReactionModel.id == existing_id)
            )
            return False

        self.db.add(
            ReactionModel(
                id=uuid4(),
                message_id=message_id,
                user_id=user_id,
                emoji=emoji,
                created_at=utcnow(),
            )
        )
        await self.db.flush()
        return True

    async def list_groups(self, message_id: UUID) -> List[ReactionGroup]:
        groups = await self.groups_for_messages([message_id])
        return groups.get(message_id, [])

    async def groups_for_messages(
        self, message_ids: List[UUID]
    ) -> Dict[UUID, List[ReactionGroup]]:
        """Reactions grouped by emoji, in order of each emoji's first use."""
        if not message_ids:
            return {}
        query = (
            select(ReactionModel)
            .where(ReactionModel.message_id.in_(set(message_ids)))
            .order_by(ReactionModel.created_at, ReactionModel.id)
        )
        result = await self.db.execute(query)

        grouped: Dict[UUID, Dict[str, List[UUID]]] = defaultdict(dict)
        for row in result.scalars().all():
            grouped[row.message_id].setdefault(row.emoji, []).append(row.user_id)

        return {
            message_id: [
                self._to_group(emoji, user_ids) for emoji, user_ids in by_emoji.items()
            ]
            for message_id, by_emoji in grouped.items()
        }

    @staticmethod
    def _to_group(emoji: str, user_ids: List[Any]) -> ReactionGroup:
        return ReactionGroup(emoji=emoji, count=len(user_ids), user_ids=user_ids)
