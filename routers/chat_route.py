import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from core.exceptions import AppError
from db.connection import get_db
from models.auth_schema import MessageResponse
from models.chat_schema import (
    BookmarkResponse,
    ChatRequest,
    ChatResponse,
    Conversation,
    ConversationCreate,
    ConversationSummary,
)
from services import conversations
from services.chat_service import handle_chat
from utils.encryption import AuthenticatedUser, get_current_user

router = APIRouter()
logger = logging.getLogger("ChatRouter")


@router.get("/conversations", response_model=List[ConversationSummary], tags=["Chat"])
async def list_conversations(
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await conversations.list_summaries(db, current_user.user_id)


@router.get("/conversations/{conversation_id}", response_model=Conversation, tags=["Chat"])
async def get_conversation(
    conversation_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await conversations.get_conversation(db, conversation_id, current_user.user_id)


@router.post("/conversations", response_model=Conversation, status_code=status.HTTP_201_CREATED, tags=["Chat"])
async def create_conversation(
    request: ConversationCreate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await conversations.create_conversation(db, current_user.user_id, request.title)


@router.delete("/conversations/{conversation_id}", response_model=MessageResponse, tags=["Chat"])
async def delete_conversation(
    conversation_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    await conversations.delete_conversation(db, conversation_id, current_user.user_id)
    return {"message": "Conversation deleted successfully"}


@router.patch("/conversations/{conversation_id}/bookmark", response_model=BookmarkResponse, tags=["Chat"])
async def toggle_bookmark(
    conversation_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await conversations.toggle_bookmark(db, conversation_id, current_user.user_id)


@router.post("/chat", response_model=ChatResponse, tags=["Chat"])
async def chat_endpoint(
    request: ChatRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Legal assistant chat. Model failures come back as a normal reply in the
    user's language; only database failures surface as a 500.
    """
    try:
        logger.info(f"Processing chat from {current_user.user_id} (Conversation: {request.conversation_id})")
        return await handle_chat(db, current_user.user_id, request)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error(f"Error processing chat: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")
