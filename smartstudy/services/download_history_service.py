"""Per-student download log."""
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from smartstudy.db.lookup import parse_uuid
from smartstudy.models.download_history import DownloadHistory
from smartstudy.models.user import User
from smartstudy.services.analytics_service import shift_months
from smartstudy.utils.pagination import Page, paginate

logger = logging.getLogger("smartstudy.downloads")

RECENT_DAYS = 7
MONTHS_WINDOW = 6


class DownloadHistoryService:
    def __init__(self, db: Session, now: Optional[datetime] = None):
        self.db = db
        self.now = now

    def _for_student(self, student: User):
        return self.db.query(DownloadHistory).filter(DownloadHistory.student_id == student.id)

    def list(self, student: User, page: int = 1, limit: int = 10) -> Page:
        return paginate(
            self._for_student(student).order_by(DownloadHistory.downloaded_at.desc()),
            page,
            limit,
        )

    def stats(self, student: User) -> dict:
        now = self.now or datetime.utcnow()
        records = self._for_student(student).order_by(DownloadHistory.downloaded_at.asc()).all()

        by_subject = defaultdict(list)
        for record in records:
            by_subject[record.note_subject].append(record.downloaded_at.isoformat())

        months_since = shift_months(now, -MONTHS_WINDOW)
        monthly = defaultdict(int)
        for record in records:
            if record.downloaded_at >= months_since:
                monthly[(record.downloaded_at.year, record.downloaded_at.month)] += 1

        recent_since = now - timedelta(days=RECENT_DAYS)
        return {
            "totalDownloads": len(records),
            "uniqueNotesCount": len({record.note_id for record in records if record.note_id}),
            "totalFileSize": sum(record.file_size or 0 for record in records),
            "downloadsBySubject": [
                {"subject": subject, "count": len(moments), "downloadedAt": moments}
                for subject, moments in by_subject.items()
            ],
            "recentDownloads": sum(1 for record in records if record.downloaded_at >= recent_since),
            "monthlyDownloads": [
                {"year": year, "month": month, "count": count}
                for (year, month), count in sorted(monthly.items())
            ],
        }

    def create(self, student: User, values: dict) -> DownloadHistory:
        """Append a record sent by the client (downloads made outside the API)."""
        record = DownloadHistory(
            note_id=parse_uuid(values.get("note_id")),
            student_id=student.id,
            file_name=values["file_name"],
            file_size=values.get("file_size") or 0,
            file_type=values.get("file_type") or "",
            note_title=values["note_title"],
            note_subject=values["note_subject"],
            note_grade=values["note_grade"],
            uploaded_by=parse_uuid(values.get("uploaded_by")),
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def delete(self, record: DownloadHistory) -> None:
        self.db.delete(record)
        self.db.commit()
        logger.info("Download history record %s deleted", record.id)
