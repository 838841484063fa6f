from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status

from chat_core.dependencies import current_user_id, get_message_service
from chat_core.models.api.messages import (
    EditMessageRequest,
    MessageResponse,
    ReactionGroup,
    ToggleReactionRequest,
)
from chat_core.services.message_service import MessageService

router = APIRouter()


@router.patch("/{message_id}", response_model=MessageResponse)
async def edit_message(
    message_id: UUID,
    request: EditMessageRequest,
    user_id: UUID = Depends(current_user_id),
    service: MessageService = Depends(get_message_service),
) -> MessageResponse:
    """Edit the text of one of your own messages."""
    return await service.edit_message(message_id, user_id, request.content)


@router.delete("/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message(
    message_id: UUID,
    user_id: UUID = Depends(current_user_id),
    service: MessageService = Depends(get_message_service),
) -> None:
    """Delete one of your own messages. Replies keep pointing at its tombstone."""
    await service.soft_delete(message_id, user_id)


@router.post("/{message_id}/reactions", response_model=List[ReactionGroup])
async def toggle_reaction(
    message_id: UUID,
    request: ToggleReactionRequest,
    user_id: UUID = Depends(current_user_id),
    service: MessageService = Depends(get_message_service),
) -> List[ReactionGroup]:
    """Toggle an emoji reaction and return the message's full reaction set."""
    return await service.toggle_reaction(message_id, user_id, request.emoji)


@router.get("/{message_id}/reactions", response_model=List[ReactionGroup])
async def list_reactions(
    message_id: UUID,
    user_id: UUID = Depends(current_user_id),
    service: MessageService = Depends(get_message_service),
) -> List[ReactionGroup]:
    return await service.get_reactions(message_id, user_id)
