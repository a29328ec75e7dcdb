from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BookCategory(str, Enum):
    books = "Books"
    case_laws = "Case Laws / Judgements"
    acts_and_rules = "Acts & Rules"
    research_papers = "Research Papers / Articles"


class BookCreate(_CamelModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    category: BookCategory
    image: str = ""
    pdf_file: str = Field(min_length=1, description="Path of the PDF relative to the uploads directory.")
    author: str = ""
    published_date: Optional[datetime] = None


class BookUpdate(_CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[BookCategory] = None
    image: Optional[str] = None
    pdf_file: Optional[str] = None
    author: Optional[str] = None
    published_date: Optional[datetime] = None
    is_active: Optional[bool] = None


class BookRecord(_CamelModel):
    id: str
    title: str
    description: str
    category: BookCategory
    image: str = ""
    pdf_file: str
    author: str = ""
    published_date: Optional[datetime] = None
    file_size: str = ""
    downloads: int = 0
    is_active: bool = True
    created_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "BookRecord":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        return cls.model_validate(data)


class PostType(str, Enum):
    picked = "picked"
    latest = "latest"
    featured = "featured"


class PostCreate(_CamelModel):
    title: str = Field(min_length=1)
    description: str = ""
    full_content: str = ""
    image: str = ""
    date: str = ""
    type: PostType = PostType.latest
    category: str = ""


class AnnouncementPriority(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"


class AnnouncementCreate(_CamelModel):
    date: str = Field(min_length=1)
    type: str = Field(min_length=1)
    title: str = Field(min_length=1)
    link: str = "#"
    category: str = Field(min_length=1)
    priority: AnnouncementPriority = AnnouncementPriority.medium


class MoreAboutCardCreate(_CamelModel):
    category: str = Field(min_length=1)
    image: str = Field(min_length=1)
    date: str = Field(min_length=1)
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    is_locked: bool = False


class LatestUpdateCreate(_CamelModel):
    title: str = Field(min_length=1)
    summary: str = Field(min_length=1)
    details: str = Field(min_length=1)
    date: str = Field(min_length=1)
    type: str = Field(min_length=1)
    image: str = Field(min_length=1)
    gradient: str = "linear-gradient(135deg, #454444 0%, #c79f44 100%)"
