from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from chat_core import config
from chat_core.dependencies import (
    current_user_id,
    get_conversation_service,
    get_message_service,
    get_read_tracker_service,
)
from chat_core.models.api.conversations import (
    ConversationResponse,
    ConversationSummary,
    CreateGroupRequest,
    MarkReadRequest,
    ReadStateResponse,
    UpdateGroupRequest,
)
from chat_core.models.api.messages import MessageResponse, SendMessageRequest
from chat_core.models.api.participants import (
    AddParticipantRequest,
    ChangeRoleRequest,
    ParticipantResponse,
    TransferOwnershipRequest,
)
from chat_core.services.conversation_service import ConversationService
from chat_core.services.message_service import MessageService
from chat_core.services.read_tracker_service import ReadTrackerService

router = APIRouter()


@router.get("", response_model=List[ConversationSummary])
async def list_conversations(
    limit: int = Query(
        50,
        description="Maximum number of conversations to return",
        ge=1,
        le=config.MAX_PAGE_SIZE,
    ),
    offset: int = Query(0, description="Number of conversations to skip", ge=0),
    user_id: UUID = Depends(current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> List[ConversationSummary]:
    """
    List the caller's active conversations, most recent activity first.

    Query parameters:
    - limit: Maximum number of conversations to return (default: 50)
    - offset: Number of conversations to skip (default: 0)
    """
    return await service.list_conversations(user_id, limit=limit, offset=offset)


@router.get("/search", response_model=List[ConversationSummary])
async def search_conversations(
    q: str = Query(..., description="Text to find in titles or participant names"),
    limit: int = Query(50, ge=1, le=config.MAX_PAGE_SIZE),
    user_id: UUID = Depends(current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> List[ConversationSummary]:
    return await service.search_conversations(user_id, q, limit=limit)


@router.get("/unread-counts", response_model=Dict[UUID, int])
async def unread_counts(
    user_id: UUID = Depends(current_user_id),
    service: ReadTrackerService = Depends(get_read_tracker_service),
) -> Dict[UUID, int]:
    """Unread badge per active conversation."""
    return await service.unread_counts_for_user(user_id)


@router.get("/unread-total")
async def unread_total(
    user_id: UUID = Depends(current_user_id),
    service: ReadTrackerService = Depends(get_read_tracker_service),
) -> Dict[str, int]:
    return {"unread_total": await service.unread_total(user_id)}


@router.post("/direct/{other_user_id}", response_model=ConversationResponse)
async def get_or_create_direct(
    other_user_id: UUID,
    user_id: UUID = Depends(current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationResponse:
    """Open the direct conversation with another user, creating it on first use."""
    return await service.get_or_create_direct(user_id, other_user_id)


@router.post(
    "/group",
    response_model=ConversationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_group(
    request: CreateGroupRequest,
    user_id: UUID = Depends(current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationResponse:
    return await service.create_group(
        creator_id=user_id,
        title=request.title,
        member_ids=request.member_ids,
        description=request.description,
        group_image_url=request.group_image_url,
    )


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: UUID,
    user_id: UUID = Depends(current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationResponse:
    """
    Get detailed information about a specific conversation.

    Path parameters:
    - conversation_id: UUID of the conversation
    """
    return await service.get_conversation(conversation_id, user_id)


@router.patch("/{conversation_id}", response_model=ConversationResponse)
async def update_group(
    conversation_id: UUID,
    request: UpdateGroupRequest,
    user_id: UUID = Depends(current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationResponse:
    return await service.update_group_info(
        conversation_id,
        user_id,
        title=request.title,
        description=request.description,
        group_image_url=request.group_image_url,
    )


@router.post(
    "/{conversation_id}/participants",
    response_model=ParticipantResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_participant(
    conversation_id: UUID,
    request: AddParticipantRequest,
    user_id: UUID = Depends(current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> ParticipantResponse:
    return await service.add_participant(conversation_id, user_id, request.user_id)


@router.delete(
    "/{conversation_id}/participants/{target_user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def kick_participant(
    conversation_id: UUID,
    target_user_id: UUID,
    user_id: UUID = Depends(current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> None:
    await service.kick(conversation_id, user_id, target_user_id)


@router.put(
    "/{conversation_id}/participants/{target_user_id}/role",
    response_model=ParticipantResponse,
)
async def change_role(
    conversation_id: UUID,
    target_user_id: UUID,
    request: ChangeRoleRequest,
    user_id: UUID = Depends(current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> ParticipantResponse:
    return await service.change_role(
        conversation_id, user_id, target_user_id, request.role
    )


@router.post("/{conversation_id}/owner", response_model=ConversationResponse)
async def transfer_ownership(
    conversation_id: UUID,
    request: TransferOwnershipRequest,
    user_id: UUID = Depends(current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> ConversationResponse:
    return await service.transfer_ownership(
        conversation_id, user_id, request.new_owner_id
    )


@router.delete("/{conversation_id}/leave", status_code=status.HTTP_204_NO_CONTENT)
async def leave_conversation(
    conversation_id: UUID,
    user_id: UUID = Depends(current_user_id),
    service: ConversationService = Depends(get_conversation_service),
) -> None:
    await service.leave(conversation_id, user_id)


@router.post("/{conversation_id}/read", response_model=ReadStateResponse)
async def mark_read(
    conversation_id: UUID,
    request: Optional[MarkReadRequest] = None,
    user_id: UUID = Depends(current_user_id),
    service: ReadTrackerService = Depends(get_read_tracker_service),
) -> ReadStateResponse:
    """Mark messages read up to ``upto`` (default: now)."""
    upto = request.upto if request else None
    return await service.mark_read(conversation_id, user_id, upto)


@router.get("/{conversation_id}/unread-count")
async def unread_count(
    conversation_id: UUID,
    user_id: UUID = Depends(current_user_id),
    service: ReadTrackerService = Depends(get_read_tracker_service),
) -> Dict[str, int]:
    return {"unread_count": await service.unread_count(conversation_id, user_id)}


@router.get("/{conversation_id}/messages", response_model=List[MessageResponse])
async def list_messages(
    conversation_id: UUID,
    before: Optional[UUID] = Query(
        None, description="Return messages older than this message id"
    ),
    limit: int = Query(
        config.DEFAULT_PAGE_SIZE,
        description="Maximum number of messages to return",
        ge=1,
        le=config.MAX_PAGE_SIZE,
    ),
    user_id: UUID = Depends(current_user_id),
    service: MessageService = Depends(get_message_service),
) -> List[MessageResponse]:
    """
    Get one page of messages, oldest first.

    Query parameters:
    - before: cursor; pass the id of the oldest message already shown
    - limit: page size
    """
    return await service.list_page(
        conversation_id, user_id, before_message_id=before, limit=limit
    )


@router.post(
    "/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: UUID,
    request: SendMessageRequest,
    user_id: UUID = Depends(current_user_id),
    service: MessageService = Depends(get_message_service),
) -> MessageResponse:
    return await service.send(
        conversation_id,
        user_id,
        content=request.content,
        media_url=request.media_url,
        media_type=request.media_type,
        reply_to_message_id=request.reply_to_message_id,
    )


@router.delete("/{conversation_id}/messages")
async def clear_messages(
    conversation_id: UUID,
    user_id: UUID = Depends(current_user_id),
    service: MessageService = Depends(get_message_service),
) -> Dict[str, int]:
    """Delete every message in the conversation for all participants."""
    return {"cleared_count": await service.clear_messages(conversation_id, user_id)}


@router.post("/{conversation_id}/typing", status_code=status.HTTP_204_NO_CONTENT)
async def typing_started(
    conversation_id: UUID,
    user_id: UUID = Depends(current_user_id),
    service: MessageService = Depends(get_message_service),
) -> None:
    await service.typing_started(conversation_id, user_id)


@router.delete("/{conversation_id}/typing", status_code=status.HTTP_204_NO_CONTENT)
async def typing_stopped(
    conversation_id: UUID,
    user_id: UUID = Depends(current_user_id),
    service: MessageService = Depends(get_message_service),
) -> None:
    await service.typing_stopped(conversation_id, user_id)
