"""Database models."""
from smartstudy.models.user import User
from smartstudy.models.note import Note, NoteTag
from smartstudy.models.review import Review
from smartstudy.models.download_history import DownloadHistory

__all__ = [
    "User",
    "Note",
    "NoteTag",
    "Review",
    "DownloadHistory",
]
