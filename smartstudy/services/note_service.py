"""Note service: listing, CRUD, statistics and file download."""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from smartstudy.core.exceptions import ResourceNotFoundError
from smartstudy.db.lookup import get_or_404, parse_uuid
from smartstudy.models.download_history import DownloadHistory
from smartstudy.models.note import Note, NoteTag
from smartstudy.models.user import User
from smartstudy.schemas.notes import NoteCreate, NoteFilters, NoteUpdate
from smartstudy.services.storage_service import PROVIDER_S3, StorageService, attachment_disposition
from smartstudy.utils.file_validator import FileValidator, UploadedFile
from smartstudy.utils.numbers import round_rating
from smartstudy.utils.pagination import Page, paginate

logger = logging.getLogger("smartstudy.notes")


@dataclass
class DownloadTarget:
    """Where the file of a downloaded note should be served from."""

    note: Note
    file_name: str
    mime_type: str
    redirect_url: Optional[str] = None
    local_path: Optional[Path] = None

    @property
    def content_disposition(self) -> str:
        return attachment_disposition(self.file_name)


class NoteService:
    def __init__(self, db: Session, storage: Optional[StorageService] = None, validator: Optional[FileValidator] = None):
        self.db = db
        self.storage = storage
        self.validator = validator

    def _available_or_404(self, note_id: str) -> Note:
        note = get_or_404(self.db, Note, note_id, "Note")
        if not note.is_available:
            raise ResourceNotFoundError("Note", note_id, message="Note not available")
        return note

    def list_notes(self, filters: NoteFilters, page: int = 1, limit: int = 10) -> Page:
        query = self.db.query(Note).filter(Note.is_active.is_(True), Note.is_public.is_(True))

        if filters.subject:
            query = query.filter(Note.subject == filters.subject)
        if filters.grade:
            query = query.filter(Note.grade == filters.grade)
        if filters.category:
            query = query.filter(Note.category == filters.category)
        if filters.difficulty:
            query = query.filter(Note.difficulty == filters.difficulty)
        if filters.tags:
            query = query.filter(Note.tag_links.any(NoteTag.tag.in_(filters.tags)))
        if filters.teacher:
            query = query.filter(Note.uploaded_by == parse_uuid(filters.teacher))

        return paginate(query.order_by(Note.created_at.desc()), page, limit)

    def my_uploads(self, teacher: User, page: int = 1, limit: int = 10) -> Page:
        query = self.db.query(Note).filter(
            Note.uploaded_by == teacher.id,
            Note.is_active.is_(True),
        ).order_by(Note.created_at.desc())
        return paginate(query, page, limit)

    def get(self, note_id: str) -> Note:
        """Fetch a visible note and count the view."""
        note = self._available_or_404(note_id)
        note.view_count = (note.view_count or 0) + 1
        self.db.commit()
        self.db.refresh(note)
        return note

    async def _store(self, upload: UploadedFile) -> dict:
        ext = self.validator.validate(upload.filename, upload.content_type, upload.size)
        mime_type = upload.content_type or self.validator.expected_mime_type(upload.filename) or "application/octet-stream"
        stored = await self.storage.save(upload.filename, upload.content, mime_type, ext)
        return stored.as_note_fields()

    async def create(self, teacher: User, data: NoteCreate, upload: Optional[UploadedFile] = None) -> Note:
        """Create a note; the file is optional."""
        note = Note(
            title=data.title,
            description=data.description,
            subject=data.subject,
            grade=data.grade,
            category=data.category,
            difficulty=data.difficulty,
            is_public=data.is_public,
            uploaded_by=teacher.id,
        )
        note.tags = data.tags

        if upload is not None:
            for field, value in (await self._store(upload)).items():
                setattr(note, field, value)

        self.db.add(note)
        self.db.commit()
        self.db.refresh(note)
        logger.info("Note %s created by teacher %s (file=%s)", note.id, teacher.id, note.has_file)
        return note

    async def update(self, note: Note, data: NoteUpdate, upload: Optional[UploadedFile] = None) -> Note:
        """Apply the fields that were sent; a new file replaces the old one."""
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        tags = changes.pop("tags", None)
        for field, value in changes.items():
            setattr(note, field, value)
        if tags is not None:
            note.tags = tags

        new_file, replaced = None, None
        if upload is not None:
            new_file = await self._store(upload)
            replaced = (note.storage_provider, note.storage_key)
            note.clear_file()
            for field, value in new_file.items():
                setattr(note, field, value)

        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            if new_file is not None:
                await self.storage.delete(new_file["storage_provider"], new_file["storage_key"])
            raise
        self.db.refresh(note)
        # the old file is only dropped once nothing references it
        if replaced is not None:
            await self.storage.delete(*replaced)
        return note

    async def delete(self, note: Note) -> None:
        """Delete a note with its reviews; the stored file is removed best-effort."""
        if note.has_file and self.storage is not None:
            await self.storage.delete(note.storage_provider, note.storage_key)

        # history keeps its snapshot but loses the link
        self.db.query(DownloadHistory).filter(DownloadHistory.note_id == note.id).update(
            {DownloadHistory.note_id: None}, synchronize_session=False
        )
        # reviews and tags go with the note (relationship cascade)
        self.db.delete(note)
        self.db.commit()
        logger.info("Note %s deleted", note.id)

    def download(self, note_id: str, caller: Optional[User] = None) -> DownloadTarget:
        """Count the download, record it for students and resolve the file."""
        note = self._available_or_404(note_id)
        if not note.has_file:
            raise ResourceNotFoundError("File", message="No file attached to this note")

        target = DownloadTarget(
            note=note,
            file_name=note.original_file_name or note.file_name,
            mime_type=note.mime_type or "application/octet-stream",
        )
        if note.storage_provider == PROVIDER_S3:
            target.redirect_url = self.storage.presigned_download_url(note.storage_key, target.file_name)
        else:
            path = Path(note.file_path or "")
            if not path.is_absolute() or not path.is_file():
                raise ResourceNotFoundError("File", message="File not found")
            target.local_path = path

        note.download_count = (note.download_count or 0) + 1
        if caller is not None and caller.is_student:
            self.db.add(DownloadHistory(
                note_id=note.id,
                student_id=caller.id,
                file_name=target.file_name,
                file_size=note.file_size or 0,
                file_type=note.file_type or "",
                note_title=note.title,
                note_subject=note.subject,
                note_grade=note.grade,
                uploaded_by=note.uploaded_by,
            ))
        self.db.commit()
        self.db.refresh(note)
        return target

    def stats(self) -> dict:
        visible = (Note.is_active.is_(True), Note.is_public.is_(True))
        total_notes, total_downloads, total_views, avg_rating = self.db.query(
            func.count(Note.id),
            func.coalesce(func.sum(Note.download_count), 0),
            func.coalesce(func.sum(Note.view_count), 0),
            func.avg(Note.average_rating),
        ).filter(*visible).one()

        subjects = self.db.query(Note.subject, func.count(Note.id)).filter(*visible).group_by(Note.subject).all()
        categories = self.db.query(Note.category, func.count(Note.id)).filter(*visible).group_by(Note.category).all()

        return {
            "totalNotes": total_notes,
            "totalDownloads": int(total_downloads),
            "totalViews": int(total_views),
            "averageRating": round_rating(avg_rating or 0),
            "subjectDistribution": {subject: count for subject, count in subjects},
            "categoryDistribution": {category: count for category, count in categories},
        }
