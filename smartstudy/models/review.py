"""Review model."""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Boolean, ForeignKey, Index, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from smartstudy.db.base import Base


CATEGORY_FLAGS = ("helpful", "clear", "complete", "accurate")


class Review(Base):
    """A student's 1-5 star rating of a note. One per (note, student)."""

    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("note_id", "student_id", name="uq_reviews_note_student"),
        Index("ix_reviews_note_visibility", "note_id", "is_active", "is_approved"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    note_id = Column(Uuid, ForeignKey("notes.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(String(500), default="")

    helpful = Column(Boolean, default=False, nullable=False)
    clear = Column(Boolean, default=False, nullable=False)
    complete = Column(Boolean, default=False, nullable=False)
    accurate = Column(Boolean, default=False, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    is_approved = Column(Boolean, default=True, nullable=False)
    moderated_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    moderation_note = Column(String(200))

    helpful_votes = Column(Integer, default=0, nullable=False)
    total_votes = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    note = relationship("Note", back_populates="reviews")
    student = relationship("User", back_populates="reviews", foreign_keys=[student_id])

    @property
    def categories(self) -> dict:
        return {flag: bool(getattr(self, flag)) for flag in CATEGORY_FLAGS}

    @categories.setter
    def categories(self, values: dict) -> None:
        for flag in CATEGORY_FLAGS:
            if flag in (values or {}):
                setattr(self, flag, bool(values[flag]))

    @property
    def helpfulness_percentage(self) -> int:
        if not self.total_votes:
            return 0
        return int(self.helpful_votes * 100 / self.total_votes + 0.5)

    @property
    def counts_toward_rating(self) -> bool:
        return bool(self.is_active and self.is_approved)
