"""Note (uploaded study material) models."""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text, Integer, Float, Boolean, ForeignKey, Index, Uuid
from sqlalchemy.orm import relationship
from smartstudy.db.base import Base


CATEGORIES = ("lecture-notes", "assignment", "reference-material", "quiz", "exam", "other")
DIFFICULTIES = ("beginner", "intermediate", "advanced")


class Note(Base):
    """Study material owned by the teacher who uploaded it.

    ``average_rating`` and ``rating_count`` are a denormalized copy of the
    review statistics and are rewritten by the review service after every
    review change.
    """

    __tablename__ = "notes"
    __table_args__ = (
        Index("ix_notes_subject_grade_category", "subject", "grade", "category"),
        Index("ix_notes_visibility", "is_public", "is_active"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    subject = Column(String(100), nullable=False)
    grade = Column(String(50), nullable=False)
    category = Column(String(30), nullable=False, default="lecture-notes")
    difficulty = Column(String(20), nullable=False, default="intermediate")

    # File metadata (a note may exist without a file)
    file_name = Column(String(255))
    original_file_name = Column(String(255))
    file_path = Column(Text)
    file_size = Column(Integer)
    file_type = Column(String(20))
    mime_type = Column(String(150))
    storage_provider = Column(String(20))  # s3 / local
    storage_key = Column(Text)
    storage_url = Column(Text)

    uploaded_by = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    is_public = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    download_count = Column(Integer, default=0, nullable=False)
    view_count = Column(Integer, default=0, nullable=False)
    average_rating = Column(Float, default=0.0, nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    teacher = relationship("User", back_populates="notes")
    tag_links = relationship(
        "NoteTag",
        back_populates="note",
        cascade="all, delete-orphan",
        order_by="NoteTag.position",
    )
    reviews = relationship("Review", back_populates="note", cascade="all, delete-orphan")

    @property
    def tags(self) -> list[str]:
        return [link.tag for link in self.tag_links]

    @tags.setter
    def tags(self, values) -> None:
        self.tag_links = [
            NoteTag(tag=value.strip().lower(), position=index)
            for index, value in enumerate(values or [])
            if value and value.strip()
        ]

    @property
    def has_file(self) -> bool:
        return bool(self.storage_key or self.file_path)

    @property
    def is_available(self) -> bool:
        return bool(self.is_active and self.is_public)

    def clear_file(self) -> None:
        for field in (
            "file_name", "original_file_name", "file_path", "file_size", "file_type",
            "mime_type", "storage_provider", "storage_key", "storage_url",
        ):
            setattr(self, field, None)


class NoteTag(Base):
    """One lowercase tag on a note; duplicates are allowed."""

    __tablename__ = "note_tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    note_id = Column(Uuid, ForeignKey("notes.id", ondelete="CASCADE"), nullable=False, index=True)
    tag = Column(String(50), nullable=False, index=True)
    position = Column(Integer, default=0, nullable=False)

    note = relationship("Note", back_populates="tag_links")
