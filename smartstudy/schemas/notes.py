"""Note input models (multipart form fields) and listing filters."""
from typing import List, Optional

from pydantic import BaseModel, field_validator

from smartstudy.models.note import CATEGORIES, DIFFICULTIES


def split_tags(value) -> Optional[List[str]]:
    """Accept ``"a, B ,c"`` or a list; return trimmed lowercase tags."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.split(",")
    return [str(tag).strip().lower() for tag in value if str(tag).strip()]


def _check_length(value: str, low: int, high: int, label: str) -> str:
    value = value.strip()
    if not low <= len(value) <= high:
        raise ValueError(f"{label} must be between {low} and {high} characters")
    return value


def _check_not_empty(value: str, message: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError(message)
    return value


class NoteUpdate(BaseModel):
    """Every field optional; only the ones sent are applied."""

    title: Optional[str] = None
    description: Optional[str] = None
    subject: Optional[str] = None
    grade: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None
    tags: Optional[List[str]] = None
    is_public: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def _title(cls, value):
        return None if value is None else _check_length(value, 3, 100, "Title")

    @field_validator("description")
    @classmethod
    def _description(cls, value):
        return None if value is None else _check_length(value, 10, 1000, "Description")

    @field_validator("subject")
    @classmethod
    def _subject(cls, value):
        return None if value is None else _check_not_empty(value, "Subject cannot be empty")

    @field_validator("grade")
    @classmethod
    def _grade(cls, value):
        return None if value is None else _check_not_empty(value, "Grade cannot be empty")

    @field_validator("category")
    @classmethod
    def _category(cls, value):
        if value is not None and value not in CATEGORIES:
            raise ValueError("Invalid category")
        return value

    @field_validator("difficulty")
    @classmethod
    def _difficulty(cls, value):
        if value is not None and value not in DIFFICULTIES:
            raise ValueError("Invalid difficulty level")
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, value):
        return split_tags(value)


class NoteCreate(NoteUpdate):
    title: str
    description: str
    subject: str
    grade: str
    category: str = "lecture-notes"
    difficulty: str = "intermediate"
    tags: List[str] = []
    is_public: bool = True


class NoteFilters(BaseModel):
    subject: Optional[str] = None
    grade: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None
    tags: Optional[List[str]] = None
    teacher: Optional[str] = None

    @field_validator("category")
    @classmethod
    def _category(cls, value):
        if value and value not in CATEGORIES:
            raise ValueError("Invalid category")
        return value or None

    @field_validator("difficulty")
    @classmethod
    def _difficulty(cls, value):
        if value and value not in DIFFICULTIES:
            raise ValueError("Invalid difficulty level")
        return value or None

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, value):
        return split_tags(value) or None
