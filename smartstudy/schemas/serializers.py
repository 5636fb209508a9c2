"""ORM -> JSON dictionaries for the API envelope (camelCase keys)."""
from datetime import datetime
from typing import Any, Dict, Optional

from smartstudy.models.download_history import DownloadHistory
from smartstudy.models.note import Note
from smartstudy.models.review import Review
from smartstudy.models.user import User


def iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def public_user(user: User) -> Dict[str, Any]:
    """Profile data safe to return to clients (no password or reset token)."""
    data: Dict[str, Any] = {
        "id": str(user.id),
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "bio": user.bio or "",
        "profilePicture": user.profile_picture or "",
        "isActive": user.is_active,
        "lastLogin": iso(user.last_login),
        "createdAt": iso(user.created_at),
    }
    profile = user.profile.model_dump(exclude={"role"})
    data.update(profile)
    return data


def user_summary(user: Optional[User]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    data = {"id": str(user.id), "name": user.name, "email": user.email, "role": user.role}
    if user.is_teacher:
        data["subject"] = user.subject
        data["qualification"] = user.qualification
    return data


def note_file(note: Note) -> Optional[Dict[str, Any]]:
    if not note.has_file:
        return None
    return {
        "fileName": note.file_name,
        "originalFileName": note.original_file_name,
        "fileSize": note.file_size,
        "fileType": note.file_type,
        "mimeType": note.mime_type,
        "storageProvider": note.storage_provider,
    }


def note_to_dict(note: Note) -> Dict[str, Any]:
    return {
        "id": str(note.id),
        "title": note.title,
        "description": note.description,
        "subject": note.subject,
        "grade": note.grade,
        "category": note.category,
        "difficulty": note.difficulty,
        "tags": note.tags,
        "file": note_file(note),
        "uploadedBy": user_summary(note.teacher),
        "isPublic": note.is_public,
        "isActive": note.is_active,
        "downloadCount": note.download_count,
        "viewCount": note.view_count,
        "averageRating": note.average_rating,
        "ratingCount": note.rating_count,
        "createdAt": iso(note.created_at),
        "updatedAt": iso(note.updated_at),
    }


def review_to_dict(review: Review) -> Dict[str, Any]:
    student = review.student
    note = review.note
    return {
        "id": str(review.id),
        "noteId": str(review.note_id),
        "note": {"id": str(note.id), "title": note.title, "subject": note.subject, "grade": note.grade} if note else None,
        "studentId": str(review.student_id),
        "student": {"id": str(student.id), "name": student.name} if student else None,
        "rating": review.rating,
        "comment": review.comment or "",
        "categories": review.categories,
        "isActive": review.is_active,
        "isApproved": review.is_approved,
        "helpfulVotes": review.helpful_votes,
        "totalVotes": review.total_votes,
        "helpfulnessPercentage": review.helpfulness_percentage,
        "createdAt": iso(review.created_at),
        "updatedAt": iso(review.updated_at),
    }


def download_to_dict(record: DownloadHistory) -> Dict[str, Any]:
    return {
        "id": str(record.id),
        "noteId": str(record.note_id) if record.note_id else None,
        "studentId": str(record.student_id),
        "downloadedAt": iso(record.downloaded_at),
        "fileName": record.file_name,
        "fileSize": record.file_size or 0,
        "fileType": record.file_type or "",
        "noteTitle": record.note_title,
        "noteSubject": record.note_subject,
        "noteGrade": record.note_grade,
        "uploadedBy": str(record.uploaded_by) if record.uploaded_by else None,
        "teacher": user_summary(record.teacher),
    }
