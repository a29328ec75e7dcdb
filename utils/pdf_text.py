import asyncio
import logging
import os
from typing import Optional

from pypdf import PdfReader
from pypdf.errors import PdfReadError

logger = logging.getLogger("PdfText")


def _extract(path: str, max_chars: Optional[int]) -> str:
    reader = PdfReader(path)
    text = ""
    for page in reader.pages:
        page_text = page.extract_text()
        if page_text:
            text += page_text + "\n"
        if max_chars is not None and len(text) >= max_chars:
            break
    return text if max_chars is None else text[:max_chars]


async def extract_pdf_text(path: str, max_chars: Optional[int] = None) -> str:
    """
    Extract plain text from a stored PDF without blocking the event loop.

    A missing or unreadable file yields an empty string.
    """
    if not os.path.isfile(path):
        logger.warning(f"PDF not found for text extraction: {path}")
        return ""
    try:
        return await asyncio.to_thread(_extract, path, max_chars)
    except (OSError, PdfReadError, ValueError) as e:
        logger.warning(f"Could not read PDF {path}: {e}")
        return ""
