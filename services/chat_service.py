import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from llm.llm_client import GeminiClient
from models.chat_schema import ChatRequest, ChatResponse
from services import context_retriever, conversations, response_generator
from utils.intent_detector import classify_message

logger = logging.getLogger("ChatService")


async def handle_chat(
    db: AsyncIOMotorDatabase,
    user_id: str,
    request: ChatRequest,
    llm: Optional[GeminiClient] = None,
) -> ChatResponse:
    """Classify, retrieve, generate, then persist the exchange."""
    message = request.message
    classification = classify_message(message)

    existing = await conversations.find_conversation(db, request.conversation_id, user_id)
    history = existing.messages if existing else []

    context = []
    if classification.is_on_topic:
        context = await context_retriever.search(db, message, user_id)

    generated = await response_generator.generate(
        message,
        classification.language,
        context,
        classification.category,
        history,
        llm=llm,
    )

    conversation = await conversations.append_exchange(
        db,
        user_id,
        existing.id if existing else None,
        message,
        generated.response_text,
        generated.sources,
    )
    logger.info(f"Chat reply stored in conversation {conversation.id} for user {user_id}")

    return ChatResponse(
        response=generated.response_text,
        conversation_id=conversation.id,
        sources=generated.sources,
        is_law_related=classification.is_on_topic,
        language=classification.language,
    )
