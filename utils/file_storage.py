"""On-disk storage for uploaded case files and book PDFs, rooted at ``UPLOADS_DIR``."""
import asyncio
import logging
import os
import shutil
import uuid
from typing import Tuple

from fastapi import UploadFile

from core.config import get_settings
from core.exceptions import InputValidationError

logger = logging.getLogger("FileStorage")

ALLOWED_CASE_FILE_TYPES = ("application/pdf", "image/")


def is_allowed_case_file(content_type: str) -> bool:
    content_type = (content_type or "").lower()
    return any(
        content_type.startswith(allowed) if allowed.endswith("/") else content_type == allowed
        for allowed in ALLOWED_CASE_FILE_TYPES
    )


def absolute_path(relative_path: str) -> str:
    root = os.path.abspath(get_settings().uploads_dir)
    path = os.path.abspath(os.path.join(root, relative_path))
    if os.path.commonpath([root, path]) != root:
        raise InputValidationError("path", "Path escapes the uploads directory")
    return path


def _copy(upload: UploadFile, destination: str) -> int:
    os.makedirs(os.path.dirname(destination), exist_ok=True)
    upload.file.seek(0)
    with open(destination, "wb") as out:
        shutil.copyfileobj(upload.file, out)
    return os.path.getsize(destination)


async def save_upload(upload: UploadFile, subdir: str) -> Tuple[str, int]:
    """
    Persist an upload under ``UPLOADS_DIR/subdir``.

    Returns:
        (path relative to the uploads directory, size in bytes)
    """
    original = os.path.basename(upload.filename or "upload")
    relative = os.path.join(subdir, f"{uuid.uuid4().hex}-{original}")
    size = await asyncio.to_thread(_copy, upload, absolute_path(relative))
    logger.info(f"Stored upload {original} as {relative} ({size} bytes)")
    return relative, size


def remove_stored(relative_path: str) -> None:
    path = absolute_path(relative_path)
    try:
        os.remove(path)
    except FileNotFoundError:
        logger.warning(f"Stored file already missing: {relative_path}")
