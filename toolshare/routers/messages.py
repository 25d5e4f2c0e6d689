"""
Conversation and message API endpoints.
Clients poll ``GET /conversations/{id}/messages?since=`` for new messages.
"""

from fastapi import APIRouter, Depends, Path, Query, status
from fastapi.responses import JSONResponse
from datetime import datetime
from typing import Optional
from toolshare.models.user import User
from toolshare.schemas.common import MessageResponse
from toolshare.schemas.conversation import (
    ConversationCreate,
    ConversationCreatedResponse,
    ConversationDetailResponse,
    ConversationListResponse,
    MessageCreate,
    MessageListResponse,
    SendMessageResponse,
    UnreadCountResponse,
)
from toolshare.services.conversation import ConversationService
from toolshare.services.message import MessageService
from toolshare.utils.dependencies import get_conversation_service, get_current_user, get_message_service
from toolshare.utils.exceptions import ForbiddenError
from toolshare.utils.validators import parse_uuid


router = APIRouter(prefix="/message", tags=["Messaging"])


@router.post(
    "/conversations",
    response_model=ConversationCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a conversation",
    description="Create a conversation, or return the existing one (200) for the same participants and context."
)
async def create_conversation(
    conversation_data: ConversationCreate,
    current_user: User = Depends(get_current_user),
    conversation_service: ConversationService = Depends(get_conversation_service)
):
    conversation, created = await conversation_service.create_conversation(current_user, conversation_data)
    if created:
        return ConversationCreatedResponse(
            message="Conversation created successfully",
            conversation=conversation,
        )
    body = ConversationCreatedResponse(message="Conversation already exists", conversation=conversation)
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=body.model_dump(mode="json", by_alias=True),
    )


@router.get(
    "/conversations",
    response_model=ConversationListResponse,
    summary="Current user's conversations"
)
async def list_conversations(
    current_user: User = Depends(get_current_user),
    conversation_service: ConversationService = Depends(get_conversation_service)
) -> ConversationListResponse:
    conversations = await conversation_service.list_conversations(current_user)
    return ConversationListResponse(conversations=conversations)


@router.get(
    "/conversations/user/{user_id}",
    response_model=ConversationListResponse,
    summary="A user's conversations",
    description="Only available for the authenticated user's own ID."
)
async def list_user_conversations(
    user_id: str = Path(..., description="User ID"),
    current_user: User = Depends(get_current_user),
    conversation_service: ConversationService = Depends(get_conversation_service)
) -> ConversationListResponse:
    if parse_uuid(user_id, "userId") != current_user.id:
        raise ForbiddenError("You can only view your own conversations")
    conversations = await conversation_service.list_conversations(current_user)
    return ConversationListResponse(conversations=conversations)


@router.get(
    "/conversations/{conversation_id}",
    response_model=ConversationDetailResponse,
    summary="Get conversation"
)
async def get_conversation(
    conversation_id: str = Path(..., description="Conversation ID"),
    current_user: User = Depends(get_current_user),
    conversation_service: ConversationService = Depends(get_conversation_service)
) -> ConversationDetailResponse:
    conversation = await conversation_service.get_conversation(
        current_user, parse_uuid(conversation_id, "conversationId")
    )
    return ConversationDetailResponse(conversation=conversation)


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=MessageListResponse,
    summary="Fetch messages",
    description="Messages in ascending order. With ``since``, only messages newer than since minus one second."
)
async def list_messages(
    conversation_id: str = Path(..., description="Conversation ID"),
    since: Optional[datetime] = Query(None, description="Return messages created after this timestamp"),
    limit: Optional[int] = Query(None, description="Maximum messages to return (1-100)"),
    current_user: User = Depends(get_current_user),
    message_service: MessageService = Depends(get_message_service)
) -> MessageListResponse:
    messages = await message_service.list_messages(
        current_user,
        parse_uuid(conversation_id, "conversationId"),
        since=since,
        limit=limit,
    )
    return MessageListResponse(messages=messages)


@router.post(
    "/messages",
    response_model=SendMessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message"
)
async def send_message(
    message_data: MessageCreate,
    current_user: User = Depends(get_current_user),
    message_service: MessageService = Depends(get_message_service)
) -> SendMessageResponse:
    """
    Store a message in a conversation.

    Raises:
        BadRequestError: If fields are missing or the text is empty or too long
        ForbiddenError: If the sender isn't the caller or isn't a participant
        NotFoundError: If the conversation doesn't exist
    """
    message = await message_service.send_message(current_user, message_data)
    return SendMessageResponse(data=message)


@router.get(
    "/unread-count",
    response_model=UnreadCountResponse,
    summary="Unread message count"
)
async def unread_count(
    current_user: User = Depends(get_current_user),
    message_service: MessageService = Depends(get_message_service)
) -> UnreadCountResponse:
    return UnreadCountResponse(unread_count=await message_service.unread_count(current_user))


@router.get(
    "/unread-count/{user_id}",
    response_model=UnreadCountResponse,
    summary="Unread message count for a user"
)
async def unread_count_for_user(
    user_id: str = Path(..., description="User ID"),
    current_user: User = Depends(get_current_user),
    message_service: MessageService = Depends(get_message_service)
) -> UnreadCountResponse:
    count = await message_service.unread_count(current_user, parse_uuid(user_id, "userId"))
    return UnreadCountResponse(unread_count=count)


@router.patch(
    "/conversations/{conversation_id}/read",
    response_model=MessageResponse,
    summary="Mark conversation read"
)
async def mark_conversation_read(
    conversation_id: str = Path(..., description="Conversation ID"),
    current_user: User = Depends(get_current_user),
    message_service: MessageService = Depends(get_message_service)
) -> MessageResponse:
    await message_service.mark_conversation_read(current_user, parse_uuid(conversation_id, "conversationId"))
    return MessageResponse(message="Conversation marked as read")


@router.patch(
    "/messages/{message_id}/read",
    response_model=MessageResponse,
    summary="Mark message read"
)
async def mark_message_read(
    message_id: str = Path(..., description="Message ID"),
    current_user: User = Depends(get_current_user),
    message_service: MessageService = Depends(get_message_service)
) -> MessageResponse:
    await message_service.mark_message_read(current_user, parse_uuid(message_id, "messageId"))
    return MessageResponse(message="Message marked as read")


@router.delete(
    "/messages/{message_id}",
    response_model=MessageResponse,
    summary="Delete message"
)
async def delete_message(
    message_id: str = Path(..., description="Message ID"),
    current_user: User = Depends(get_current_user),
    message_service: MessageService = Depends(get_message_service)
) -> MessageResponse:
    await message_service.delete_message(current_user, parse_uuid(message_id, "messageId"))
    return MessageResponse(message="Message deleted successfully")


@router.delete(
    "/conversations/{conversation_id}",
    response_model=MessageResponse,
    summary="Delete conversation"
)
async def delete_conversation(
    conversation_id: str = Path(..., description="Conversation ID"),
    current_user: User = Depends(get_current_user),
    conversation_service: ConversationService = Depends(get_conversation_service)
) -> MessageResponse:
    await conversation_service.delete_conversation(current_user, parse_uuid(conversation_id, "conversationId"))
    return MessageResponse(message="Conversation deleted successfully")
