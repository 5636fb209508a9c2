"""Download history routes (students only)."""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy.orm import Session

from smartstudy.core.permissions import owned_by_caller, require_student
from smartstudy.db.sessions import get_db
from smartstudy.models.download_history import DownloadHistory
from smartstudy.models.user import User
from smartstudy.schemas.base import CamelModel
from smartstudy.schemas.serializers import download_to_dict
from smartstudy.services.download_history_service import DownloadHistoryService


router = APIRouter(prefix="/download-history", tags=["Download History"])

owned_record = owned_by_caller(
    DownloadHistory,
    "student_id",
    resource_name="Download history record",
    message="Access denied. You can only delete your own download history.",
    user_dependency=require_student,
    path_param="record_id",
)


class CreateDownloadRequest(CamelModel):
    note_id: Optional[str] = None
    file_name: str = Field(min_length=1)
    file_size: Optional[int] = Field(None, ge=0)
    file_type: Optional[str] = None
    note_title: str = Field(min_length=1)
    note_subject: str = Field(min_length=1)
    note_grade: str = Field(min_length=1)
    uploaded_by: Optional[str] = None


@router.get("")
def list_downloads(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    current_user: User = Depends(require_student),
    db: Session = Depends(get_db),
):
    result = DownloadHistoryService(db).list(current_user, page, limit)
    return {
        "success": True,
        "data": [download_to_dict(record) for record in result.items],
        "pagination": {
            "currentPage": result.page,
            "totalPages": result.total_pages,
            "totalItems": result.total,
            "itemsPerPage": result.limit,
        },
    }


@router.get("/stats")
def download_stats(current_user: User = Depends(require_student), db: Session = Depends(get_db)):
    return {"success": True, "data": DownloadHistoryService(db).stats(current_user)}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_download(
    body: CreateDownloadRequest,
    current_user: User = Depends(require_student),
    db: Session = Depends(get_db),
):
    record = DownloadHistoryService(db).create(current_user, body.model_dump())
    return {"success": True, "data": download_to_dict(record)}


@router.delete("/{record_id}")
def delete_download(record: DownloadHistory = Depends(owned_record), db: Session = Depends(get_db)):
    DownloadHistoryService(db).delete(record)
    return {"success": True, "message": "Download history record deleted successfully"}
