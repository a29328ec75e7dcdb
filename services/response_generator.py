"""
Response Generator
Builds the language-aware prompt and calls the generative model. Never raises
for model failures: the caller always gets a message it can show the user.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from core.config import get_settings
from core.exceptions import ExternalServiceError
from llm.legal_prompt import build_prompt, decline_message, error_message, system_instruction
from llm.llm_client import GeminiClient, get_llm_client
from models.chat_schema import ChatMessage, ContextItem, Language, QueryCategory

logger = logging.getLogger("ResponseGenerator")


@dataclass
class GeneratedResponse:
    response_text: str
    sources: List[str] = field(default_factory=list)
    failed: bool = False


def build_context_block(context: Sequence[ContextItem], item_chars: Optional[int] = None) -> Tuple[str, List[str]]:
    """Number and truncate context items; returns the text and the sources it cites, in order."""
    limit = item_chars if item_chars is not None else get_settings().context_item_chars
    lines = []
    sources = []
    for index, item in enumerate(context, start=1):
        content = item.content
        if len(content) > limit:
            content = content[:limit] + "..."
        lines.append(f"[{index}] {item.title}\n{content}")
        sources.append(item.source)
    return "\n\n".join(lines), sources


async def generate(
    query: str,
    language: Language,
    context: Sequence[ContextItem],
    category: QueryCategory,
    history: Sequence[ChatMessage] = (),
    llm: Optional[GeminiClient] = None,
) -> GeneratedResponse:
    """
    Produce the assistant reply for one message.

    Args:
        query: The user's message
        language: Detected language; persona, decline and error text follow it
        context: Retrieved context items
        category: Classifier output; off-topic messages are declined without a model call
        history: Earlier messages of the conversation, oldest first
        llm: Model client, defaults to the shared Gemini client

    Returns:
        GeneratedResponse; ``failed`` is set when the model could not be reached
    """
    if category == QueryCategory.off_topic:
        logger.info("Declining off-topic message without a model call")
        return GeneratedResponse(response_text=decline_message(language))

    settings = get_settings()
    recent = list(history)[-settings.chat_history_turns:] if settings.chat_history_turns > 0 else []
    context_block, sources = build_context_block(context)
    prompt = build_prompt(query, language, context_block, category, recent)

    try:
        client = llm or get_llm_client()
        text = await client.generate(prompt, system_instruction(language))
    except ExternalServiceError as e:
        logger.error(f"Response generation failed: {e.message}")
        return GeneratedResponse(response_text=error_message(language), failed=True)

    return GeneratedResponse(response_text=text, sources=sources)
