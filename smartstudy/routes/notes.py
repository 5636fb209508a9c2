"""Note routes: browsing, teacher uploads and file download."""
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from fastapi.responses import FileResponse, RedirectResponse
from sqlalchemy.orm import Session

from smartstudy.core.context import AppContext
from smartstudy.core.exceptions import FileTooLargeError
from smartstudy.core.permissions import get_optional_user, owned_by_caller, require_teacher
from smartstudy.db.sessions import get_context, get_db
from smartstudy.models.note import Note
from smartstudy.models.user import User
from smartstudy.schemas.base import parse_model
from smartstudy.schemas.notes import NoteCreate, NoteFilters, NoteUpdate
from smartstudy.schemas.serializers import note_to_dict
from smartstudy.services.note_service import NoteService
from smartstudy.utils.file_validator import FileValidator, UploadedFile


router = APIRouter(prefix="/notes", tags=["Notes"])

owned_note = owned_by_caller(
    Note,
    "uploaded_by",
    resource_name="Note",
    message="Access denied. You can only modify your own notes.",
    user_dependency=require_teacher,
    path_param="note_id",
)


def _service(db: Session, context: AppContext) -> NoteService:
    settings = context.settings
    return NoteService(db, context.storage, FileValidator(settings.allowed_extensions, settings.MAX_FILE_SIZE))


async def _read_upload(file: Optional[UploadFile], max_size: int) -> Optional[UploadedFile]:
    if file is None or not file.filename:
        return None
    # the spooled upload already knows its size; refuse before buffering it
    if file.size is not None and file.size > max_size:
        raise FileTooLargeError(max_size)
    content = await file.read()
    return UploadedFile(filename=file.filename, content_type=file.content_type, content=content)


def _form_values(**fields) -> dict:
    # absent form fields stay unset so the model can tell "missing" from "empty"
    return {name: value for name, value in fields.items() if value is not None}


@router.get("")
def list_notes(
    request: Request,
    subject: Optional[str] = None,
    grade: Optional[str] = None,
    category: Optional[str] = None,
    difficulty: Optional[str] = None,
    tags: Optional[str] = None,
    teacher: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """
    List active public notes, newest first.

    ``tags`` is comma separated and matches notes carrying any of them.
    """
    filters = parse_model(NoteFilters, _form_values(
        subject=subject, grade=grade, category=category,
        difficulty=difficulty, tags=tags, teacher=teacher,
    ))
    result = _service(db, get_context(request)).list_notes(filters, page, limit)
    return result.envelope([note_to_dict(note) for note in result.items])


@router.get("/stats")
def notes_stats(request: Request, db: Session = Depends(get_db)):
    return {"success": True, "data": _service(db, get_context(request)).stats()}


@router.get("/my-uploads")
def my_uploads(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    result = _service(db, get_context(request)).my_uploads(current_user, page, limit)
    return result.envelope([note_to_dict(note) for note in result.items])


@router.get("/{note_id}/download")
def download_note(
    note_id: str,
    request: Request,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """
    Download the note's file.

    Stored objects are served by redirecting to a signed URL; local files are
    streamed. Either way the browser is told to save the file.
    """
    target = _service(db, get_context(request)).download(note_id, current_user)
    headers = {"Content-Disposition": target.content_disposition}
    if target.redirect_url:
        return RedirectResponse(target.redirect_url, status_code=status.HTTP_302_FOUND, headers=headers)
    return FileResponse(target.local_path, media_type=target.mime_type, headers=headers)


@router.get("/{note_id}")
def get_note(note_id: str, request: Request, db: Session = Depends(get_db)):
    note = _service(db, get_context(request)).get(note_id)
    return {"success": True, "data": note_to_dict(note)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_note(
    request: Request,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    subject: Optional[str] = Form(None),
    grade: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    difficulty: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    is_public: Optional[bool] = Form(None, alias="isPublic"),
    file: Optional[UploadFile] = File(None),
    current_user: User = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    """Upload a note (multipart). The file is optional."""
    data = parse_model(NoteCreate, _form_values(
        title=title, description=description, subject=subject, grade=grade,
        category=category, difficulty=difficulty, tags=tags, is_public=is_public,
    ))
    context = get_context(request)
    upload = await _read_upload(file, context.settings.MAX_FILE_SIZE)
    note = await _service(db, context).create(current_user, data, upload)
    return {"success": True, "message": "Note uploaded successfully", "data": note_to_dict(note)}


@router.put("/{note_id}")
async def update_note(
    request: Request,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    subject: Optional[str] = Form(None),
    grade: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    difficulty: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    is_public: Optional[bool] = Form(None, alias="isPublic"),
    file: Optional[UploadFile] = File(None),
    note: Note = Depends(owned_note),
    db: Session = Depends(get_db),
):
    data = parse_model(NoteUpdate, _form_values(
        title=title, description=description, subject=subject, grade=grade,
        category=category, difficulty=difficulty, tags=tags, is_public=is_public,
    ))
    context = get_context(request)
    upload = await _read_upload(file, context.settings.MAX_FILE_SIZE)
    note = await _service(db, context).update(note, data, upload)
    return {"success": True, "message": "Note updated successfully", "data": note_to_dict(note)}


@router.delete("/{note_id}")
async def delete_note(request: Request, note: Note = Depends(owned_note), db: Session = Depends(get_db)):
    await _service(db, get_context(request)).delete(note)
    return {"success": True, "message": "Note deleted successfully"}
