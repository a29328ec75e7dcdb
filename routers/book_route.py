import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse
from motor.motor_asyncio import AsyncIOMotorDatabase

from core.deps import get_current_account, require_roles
from core.exceptions import AppError
from core.roles import UserRole
from db.connection import get_db
from models.auth_schema import MessageResponse
from models.content_schema import BookCategory, BookCreate, BookRecord, BookUpdate
from models.user_schema import UserAccount
from services import books
from utils.encryption import AuthenticatedUser

router = APIRouter()
logger = logging.getLogger("BookRouter")

admin_only = require_roles(UserRole.admin)


@router.get("", response_model=List[BookRecord])
async def list_books(
    category: Optional[BookCategory] = None,
    search: Optional[str] = None,
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await books.list_books(db, category, search)


@router.get("/stats/by-category")
async def book_stats(db: AsyncIOMotorDatabase = Depends(get_db)):
    return await books.stats_by_category(db)


@router.get("/{book_id}", response_model=BookRecord)
async def get_book(book_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return await books.get_book(db, book_id)


@router.get("/{book_id}/download")
async def download_book(
    book_id: str,
    account: UserAccount = Depends(get_current_account),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        path, filename = await books.prepare_download(db, book_id, account)
        return FileResponse(path, media_type="application/pdf", filename=filename)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error(f"Error in download_book: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post("", response_model=BookRecord, status_code=status.HTTP_201_CREATED)
async def create_book(
    request: BookCreate,
    _: AuthenticatedUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await books.create_book(db, request)


@router.put("/{book_id}", response_model=BookRecord)
async def update_book(
    book_id: str,
    request: BookUpdate,
    _: AuthenticatedUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await books.update_book(db, book_id, request)


@router.delete("/{book_id}", response_model=MessageResponse)
async def delete_book(
    book_id: str,
    _: AuthenticatedUser = Depends(admin_only),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    await books.delete_book(db, book_id)
    return {"message": "Book deleted successfully"}
