import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from core.deps import get_current_account
from core.exceptions import AppError
from db.connection import get_db
from models.auth_schema import MessageResponse
from models.case_schema import StandaloneNoteCreate, StandaloneNoteRecord
from models.user_schema import UserAccount
from services import notes
from utils.encryption import AuthenticatedUser, get_current_user

router = APIRouter()
logger = logging.getLogger("NoteRouter")


@router.get("", response_model=List[StandaloneNoteRecord])
async def list_notes(
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await notes.list_notes(db, current_user.user_id)


@router.get("/search/{query}", response_model=List[StandaloneNoteRecord])
async def search_notes(
    query: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await notes.search_notes(db, current_user.user_id, query)


@router.get("/{note_id}", response_model=StandaloneNoteRecord)
async def get_note(
    note_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await notes.get_note(db, note_id, current_user.user_id)


@router.post("", response_model=StandaloneNoteRecord, status_code=status.HTTP_201_CREATED)
async def create_note(
    request: StandaloneNoteCreate,
    account: UserAccount = Depends(get_current_account),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        return await notes.create_note(db, account, request)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error(f"Error in create_note: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.put("/{note_id}", response_model=StandaloneNoteRecord)
async def update_note(
    note_id: str,
    request: StandaloneNoteCreate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await notes.update_note(db, note_id, current_user.user_id, request)


@router.delete("/{note_id}", response_model=MessageResponse)
async def delete_note(
    note_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    await notes.delete_note(db, note_id, current_user.user_id)
    return {"message": "Note deleted successfully"}
