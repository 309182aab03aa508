"""
Chat API Routes

This module provides REST API endpoints for the taste assistant:
- Send a message (starting a conversation when no id is given)
- List, read and delete conversations

All endpoints require authentication.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from app.core.auth import CurrentUser
from app.core.errors import AppError
from app.core.logging import get_logger
from app.core.rate_limit import chat_rate_limit
from app.db.deps import DBSession
from app.schemas.chat import (
    ChatRequest,
    ChatResponse,
    ConversationDetailResponse,
    ConversationListResponse,
    ConversationResponse,
    MessageResponse,
)
from app.services.chat import ChatService

logger = get_logger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


# ========================================
# Chat
# ========================================

@router.post("", response_model=ChatResponse, dependencies=[Depends(chat_rate_limit)])
async def chat(
    request: ChatRequest,
    current_user: CurrentUser,
    db: DBSession,
):
    """
    Send a message and get the assistant's reply.

    Without conversation_id a new conversation is started, titled with the
    first 50 characters of the message.

    Raises:
        HTTPException 404: Conversation not found (or not yours)
        HTTPException 503: AI service not configured
    """
    try:
        conversation, reply = await ChatService(db).send_message(
            current_user,
            request.message,
            conversation_id=request.conversation_id,
        )
        return ChatResponse(conversation_id=conversation.id, message=reply)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("chat_failed", user_id=current_user.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process chat message"
        )


# ========================================
# Conversation Management
# ========================================

@router.get("/conversations", response_model=ConversationListResponse)
async def list_conversations(current_user: CurrentUser, db: DBSession):
    try:
        conversations = await ChatService(db).list_conversations(current_user.id)
        return ConversationListResponse(
            conversations=[ConversationResponse.model_validate(c) for c in conversations]
        )
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("conversation_list_failed", user_id=current_user.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list conversations"
        )


@router.get("/conversations/{conversation_id}", response_model=ConversationDetailResponse)
async def get_conversation(conversation_id: int, current_user: CurrentUser, db: DBSession):
    try:
        service = ChatService(db)
        conversation = await service.get_conversation(conversation_id, current_user.id)
        messages = await service.get_messages(conversation_id, current_user.id)
        return ConversationDetailResponse(
            conversation=ConversationResponse.model_validate(conversation),
            messages=[MessageResponse.model_validate(m) for m in messages],
        )
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("conversation_fetch_failed", user_id=current_user.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get conversation"
        )


@router.get("/conversations/{conversation_id}/messages", response_model=list[MessageResponse])
async def get_messages(conversation_id: int, current_user: CurrentUser, db: DBSession):
    try:
        messages = await ChatService(db).get_messages(conversation_id, current_user.id)
        return [MessageResponse.model_validate(m) for m in messages]
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("message_list_failed", user_id=current_user.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get messages"
        )


@router.delete("/conversations/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(conversation_id: int, current_user: CurrentUser, db: DBSession):
    try:
        await ChatService(db).delete_conversation(conversation_id, current_user.id)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("conversation_delete_failed", user_id=current_user.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete conversation"
        )
