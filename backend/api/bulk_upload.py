"""
Bulk upload API endpoints
Sessions of uploaded files that are probed, tagged and imported as videos
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status, File, UploadFile
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import Optional, List

from core.database import get_db
from core.security import require_roles
from models.user import User, UserRole
from models.bulk_upload import UploadSessionStatus
from services import bulk_upload_service
from services.bulk_upload_service import BulkUploadError
from services.storage import StorageError
from workers.upload_tasks import process_bulk_upload_session

logger = logging.getLogger(__name__)

router = APIRouter()

require_uploader = require_roles(UserRole.UPLOADER)


# ============================================
# Request/Response Models (Pydantic schemas)
# ============================================

class CreateSessionRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    defaultCategoryId: Optional[int] = None
    defaultTags: Optional[List[str]] = None
    notes: Optional[str] = None


class CreateVideoRequest(BaseModel):
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    categoryId: Optional[int] = None
    isPremium: bool = True
    isLoop: bool = False
    tags: Optional[List[str]] = None


def _raise(e: BulkUploadError):
    raise HTTPException(status_code=e.status_code, detail=str(e))


def _session(db: Session, session_id: int, user: User):
    try:
        return bulk_upload_service.get_session(db, session_id, user.id)
    except BulkUploadError as e:
        _raise(e)


# ============================================
# Sessions
# ============================================

@router.post("/sessions", status_code=status.HTTP_201_CREATED)
async def create_session(
    request: CreateSessionRequest,
    current_user: User = Depends(require_uploader),
    db: Session = Depends(get_db)
):
    session = bulk_upload_service.create_session(
        db,
        current_user.id,
        request.name,
        request.defaultCategoryId,
        request.defaultTags,
        request.notes,
    )
    return session.to_dict()


@router.get("/sessions")
async def list_sessions(
    current_user: User = Depends(require_uploader),
    db: Session = Depends(get_db)
):
    return [s.to_dict() for s in bulk_upload_service.list_sessions(db, current_user.id)]


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: int,
    current_user: User = Depends(require_uploader),
    db: Session = Depends(get_db)
):
    return _session(db, session_id, current_user).to_dict(include_files=True)


@router.post("/sessions/{session_id}/cancel")
async def cancel_session(
    session_id: int,
    current_user: User = Depends(require_uploader),
    db: Session = Depends(get_db)
):
    session = _session(db, session_id, current_user)
    return bulk_upload_service.cancel_session(db, session).to_dict()


# ============================================
# Files
# ============================================

@router.post("/sessions/{session_id}/files", status_code=status.HTTP_201_CREATED)
async def upload_files(
    session_id: int,
    files: List[UploadFile] = File(...),
    current_user: User = Depends(require_uploader),
    db: Session = Depends(get_db)
):
    """
    Add video files to an in-progress session
    """
    session = _session(db, session_id, current_user)

    uploaded = []
    try:
        for upload in files:
            uploaded.append(
                bulk_upload_service.add_file(db, session, upload.filename, upload.file, upload.content_type)
            )
    except BulkUploadError as e:
        db.rollback()
        _raise(e)
    except StorageError as e:
        db.rollback()
        logger.error(f"❌ Bulk upload storage failure in session {session_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to store uploaded file"
        )

    db.commit()
    db.refresh(session)

    logger.info(f"📤 {len(uploaded)} files added to session {session_id}")
    return {
        "session": session.to_dict(),
        "files": [f.to_dict() for f in uploaded],
    }


@router.post("/sessions/{session_id}/process", status_code=status.HTTP_202_ACCEPTED)
async def process_session(
    session_id: int,
    current_user: User = Depends(require_uploader),
    db: Session = Depends(get_db)
):
    """Queue probing and tag suggestion for the session's pending files"""
    session = _session(db, session_id, current_user)
    if session.status != UploadSessionStatus.IN_PROGRESS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Session is {session.status.value}"
        )

    db.commit()
    task = process_bulk_upload_session.delay(session.id)
    return {"message": "Processing started", "sessionId": session.id, "taskId": task.id}


@router.post("/files/{file_id}/create-video", status_code=status.HTTP_201_CREATED)
async def create_video_from_file(
    file_id: int,
    request: CreateVideoRequest,
    current_user: User = Depends(require_uploader),
    db: Session = Depends(get_db)
):
    """Import a processed file into the catalog"""
    data = {
        "title": request.title,
        "description": request.description,
        "category_id": request.categoryId,
        "is_premium": request.isPremium,
        "is_loop": request.isLoop,
        "tags": request.tags,
    }
    try:
        video = bulk_upload_service.create_video_from_file(db, file_id, current_user.id, data)
    except BulkUploadError as e:
        _raise(e)
    except StorageError as e:
        logger.error(f"❌ Import of upload {file_id} failed: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to copy the uploaded file"
        )

    return {"message": "Video created successfully", "video": video.to_dict(include_category=True)}
