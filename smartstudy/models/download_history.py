"""Download history model."""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, Index, Uuid
from sqlalchemy.orm import relationship
from smartstudy.db.base import Base


class DownloadHistory(Base):
    """Append-only record of one download.

    Note title/subject/grade and file details are copied at download time so
    the record stays meaningful after the note is edited or deleted.
    """

    __tablename__ = "download_history"
    __table_args__ = (
        Index("ix_download_history_student_time", "student_id", "downloaded_at"),
        Index("ix_download_history_note_time", "note_id", "downloaded_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    note_id = Column(Uuid, ForeignKey("notes.id", ondelete="SET NULL"))
    student_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    downloaded_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    file_name = Column(String(255), nullable=False)
    file_size = Column(Integer, default=0)
    file_type = Column(String(20), default="")

    note_title = Column(String(100), nullable=False)
    note_subject = Column(String(100), nullable=False)
    note_grade = Column(String(50), nullable=False)
    uploaded_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    student = relationship("User", foreign_keys=[student_id])
    teacher = relationship("User", foreign_keys=[uploaded_by])
