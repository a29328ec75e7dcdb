from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Language(str, Enum):
    urdu = "urdu"
    roman_urdu = "roman_urdu"
    english = "english"


class QueryCategory(str, Enum):
    greeting = "greeting"
    legal = "legal"
    off_topic = "off_topic"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContextItem(BaseModel):
    """A retrieved record supplied to the model as grounding material."""

    kind: Literal["case", "book", "article"]
    title: str
    content: str
    source: str


class ChatMessage(_CamelModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime
    sources: List[str] = Field(default_factory=list)


# Chat models extracted from routers for better organization
class ChatRequest(_CamelModel):
    """Chat request model"""
    message: str
    conversation_id: Optional[str] = None

    @field_validator("message")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Message is required")
        return v.strip()


class ChatResponse(_CamelModel):
    response: str
    conversation_id: str
    sources: List[str]
    is_law_related: bool
    language: Language


class ConversationCreate(BaseModel):
    title: Optional[str] = None


class ConversationSummary(_CamelModel):
    id: str
    title: str
    preview: str
    date: str
    messages: int
    is_bookmarked: bool


class Conversation(_CamelModel):
    id: str
    user_id: str
    title: str
    messages: List[ChatMessage] = Field(default_factory=list)
    is_bookmarked: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Conversation":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        data["user_id"] = str(data["user_id"])
        return cls.model_validate(data)


class BookmarkResponse(_CamelModel):
    is_bookmarked: bool
