"""
Context Retriever
Keyword search over the caller's cases, active books and published articles,
producing the grounding material for the legal assistant.
"""
import logging
import os
import re
from typing import Any, Dict, List

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from core.config import get_settings
from db.collections import get_book_collection, get_case_collection, get_post_collection
from models.chat_schema import ContextItem
from utils.pdf_text import extract_pdf_text

logger = logging.getLogger("ContextRetriever")


def _pattern(query: str) -> Dict[str, Any]:
    # The query is user text; escape it so it is matched literally.
    return {"$regex": re.escape(query.strip()), "$options": "i"}


def _any_field(query: str, *fields: str) -> Dict[str, Any]:
    pattern = _pattern(query)
    return {"$or": [{field: pattern} for field in fields]}


async def search_cases(db: AsyncIOMotorDatabase, query: str, user_id: str, limit: int) -> List[ContextItem]:
    cursor = get_case_collection(db).find(
        {"user_id": ObjectId(user_id), **_any_field(query, "title", "description", "type")}
    ).limit(limit)

    items = []
    async for case in cursor:
        items.append(
            ContextItem(
                kind="case",
                title=case["title"],
                content=(
                    f"Case No: {case.get('case_no')}, Type: {case.get('type')}, "
                    f"Status: {case.get('status')}, Description: {case.get('description') or 'N/A'}"
                ),
                source=f"Case: {case['title']}",
            )
        )
    return items


async def search_books(db: AsyncIOMotorDatabase, query: str, limit: int) -> List[ContextItem]:
    settings = get_settings()
    cursor = get_book_collection(db).find(
        {"is_active": True, **_any_field(query, "title", "description", "category")}
    ).limit(limit)

    items = []
    async for book in cursor:
        content = book.get("description", "")
        if book.get("pdf_file"):
            pdf_path = os.path.join(settings.uploads_dir, book["pdf_file"])
            pdf_text = await extract_pdf_text(pdf_path, max_chars=settings.book_text_chars)
            if pdf_text:
                content = f"{content}\n\n{pdf_text[:settings.book_text_chars]}"
        items.append(
            ContextItem(
                kind="book",
                title=book["title"],
                content=content,
                source=f"Book: {book['title']} ({book.get('category')})",
            )
        )
    return items


async def search_articles(db: AsyncIOMotorDatabase, query: str, limit: int) -> List[ContextItem]:
    cursor = get_post_collection(db).find(_any_field(query, "title", "description", "full_content")).limit(limit)

    items = []
    async for post in cursor:
        items.append(
            ContextItem(
                kind="article",
                title=post["title"],
                content=post.get("full_content") or post.get("description", ""),
                source=f"Article: {post['title']}",
            )
        )
    return items


async def search(db: AsyncIOMotorDatabase, query: str, user_id: str) -> List[ContextItem]:
    """
    Find records relevant to a chat message.

    Args:
        db: Database connection
        query: The user's message, matched as a case-insensitive literal
        user_id: Requesting user; only their own cases are searched

    Returns:
        Cases, then books, then articles, each capped by its configured limit
    """
    settings = get_settings()
    if not query or not query.strip():
        return []

    results: List[ContextItem] = []
    results.extend(await search_cases(db, query, user_id, settings.case_results_limit))
    results.extend(await search_books(db, query, settings.book_results_limit))
    results.extend(await search_articles(db, query, settings.article_results_limit))

    logger.info(f"Context search for user {user_id} returned {len(results)} items")
    return results
