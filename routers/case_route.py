import logging
from typing import List

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import FileResponse
from motor.motor_asyncio import AsyncIOMotorDatabase

from core.deps import get_current_account
from core.exceptions import AppError
from db.connection import get_db
from models.auth_schema import MessageResponse
from models.case_schema import (
    AttachmentDeleteRequest,
    CaseCreate,
    CaseNoteCreate,
    CaseRecord,
    CaseStatusUpdate,
    CaseUpdate,
    FileRecord,
    NoteRecord,
    NoteUpdate,
)
from models.user_schema import UserAccount
from services import cases
from utils.encryption import AuthenticatedUser, get_current_user
from utils.file_storage import absolute_path

router = APIRouter()
logger = logging.getLogger("CaseRouter")


@router.get("/cases", response_model=List[CaseRecord], tags=["Cases"])
async def list_cases(
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await cases.list_cases(db, current_user.user_id)


@router.get("/cases/{case_id}", response_model=CaseRecord, tags=["Cases"])
async def get_case(
    case_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await cases.get_case(db, case_id, current_user.user_id)


@router.post("/cases", response_model=CaseRecord, status_code=status.HTTP_201_CREATED, tags=["Cases"])
async def create_case(
    request: CaseCreate,
    account: UserAccount = Depends(get_current_account),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        return await cases.create_case(db, account, request)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error(f"Error in create_case: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.put("/cases/{case_id}", response_model=CaseRecord, tags=["Cases"])
async def update_case(
    case_id: str,
    request: CaseUpdate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        return await cases.update_case(db, case_id, current_user.user_id, request)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error(f"Error in update_case: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.patch("/cases/{case_id}/status", response_model=CaseRecord, tags=["Cases"])
async def update_case_status(
    case_id: str,
    request: CaseStatusUpdate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await cases.update_status(db, case_id, current_user.user_id, request.status)


@router.delete("/cases/{case_id}", response_model=MessageResponse, tags=["Cases"])
async def delete_case(
    case_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        await cases.delete_case(db, case_id, current_user.user_id)
        return {"message": "Case deleted successfully"}
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error(f"Error in delete_case: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post("/cases/{case_id}/notes", response_model=NoteRecord, status_code=status.HTTP_201_CREATED, tags=["Cases"])
async def add_case_note(
    case_id: str,
    request: CaseNoteCreate,
    account: UserAccount = Depends(get_current_account),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        return await cases.add_note(db, case_id, account, request)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error(f"Error in add_case_note: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.post("/cases/{case_id}/upload", response_model=List[FileRecord], tags=["Cases"])
async def upload_case_files(
    case_id: str,
    section_type: str = Form(..., alias="sectionType"),
    files: List[UploadFile] = File(...),
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        return await cases.upload_files(db, case_id, current_user.user_id, section_type, files)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error(f"Error in upload_case_files: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.delete("/cases/{case_id}/items/{item_id}", response_model=MessageResponse, tags=["Cases"])
async def delete_case_item(
    case_id: str,
    item_id: str,
    request: AttachmentDeleteRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        await cases.delete_item(db, case_id, item_id, current_user.user_id, request.section_type, request.item_type)
        return {"message": "Item deleted successfully"}
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error(f"Error in delete_case_item: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@router.get("/notes/{note_id}", response_model=NoteRecord, tags=["Cases"])
async def get_note(
    note_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await cases.get_note(db, note_id, current_user.user_id)


@router.put("/notes/{note_id}", response_model=NoteRecord, tags=["Cases"])
async def update_note(
    note_id: str,
    request: NoteUpdate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await cases.update_note(db, note_id, current_user.user_id, request)


@router.get("/files/{file_id}", response_model=FileRecord, tags=["Cases"])
async def get_file(
    file_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return await cases.get_file(db, file_id, current_user.user_id)


@router.get("/files/{file_id}/download", tags=["Cases"])
async def download_file(
    file_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    doc = await cases.get_file_document(db, file_id, current_user.user_id)
    return FileResponse(absolute_path(doc["relative_path"]), media_type=doc["mimetype"], filename=doc["original_name"])
