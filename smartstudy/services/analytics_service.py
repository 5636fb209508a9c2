"""Analytics derived on read from notes, reviews and the download log.

Nothing here keeps running counters: each call queries the rows it needs and
aggregates them in Python. Timestamps are naive UTC like the rest of the
models, and every entry point accepts ``now`` so tests can pin the clock.
"""
import logging
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from smartstudy.models.download_history import DownloadHistory
from smartstudy.models.note import Note
from smartstudy.models.review import Review
from smartstudy.models.user import User
from smartstudy.schemas.serializers import iso
from smartstudy.utils.numbers import mean, round_rating

logger = logging.getLogger("smartstudy.analytics")

SUBJECT_PERFORMANCE_LIMIT = 10
TOP_NOTES_LIMIT = 10
RECENT_NOTES_LIMIT = 5
RECENT_ACTIVITY_DAYS = 30


def shift_months(moment: datetime, months: int) -> datetime:
    """Move ``moment`` by whole calendar months, clamping the day of month."""
    month_index = moment.year * 12 + (moment.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    for day in range(moment.day, 0, -1):
        try:
            return moment.replace(year=year, month=month, day=day)
        except ValueError:
            continue
    raise ValueError(f"cannot shift {moment!r} by {months} months")


def month_key(moment: datetime) -> str:
    return moment.strftime("%Y-%m")


def monthly_counts(moments: Iterable[datetime]) -> Dict[str, int]:
    """Counts per calendar month (``YYYY-MM``), oldest month first."""
    counts = Counter(month_key(moment) for moment in moments)
    return dict(sorted(counts.items()))


def compute_streaks(days: Iterable[date], today: date) -> Tuple[int, int]:
    """Return ``(current, max)`` runs of consecutive days.

    The current streak counts backward from ``today`` and is zero when there
    is no activity today. The max streak is the longest run anywhere.
    """
    active = set(days)
    if not active:
        return 0, 0

    current = 0
    day = today
    while day in active:
        current += 1
        day -= timedelta(days=1)

    longest = run = 0
    previous = None
    for day in sorted(active):
        run = run + 1 if previous is not None and day - previous == timedelta(days=1) else 1
        longest = max(longest, run)
        previous = day

    return current, longest


class AnalyticsService:
    def __init__(self, db: Session, now: Optional[datetime] = None):
        self.db = db
        self.now = now

    def _now(self) -> datetime:
        return self.now or datetime.utcnow()

    def student_progress(self, student: User) -> dict:
        now = self._now()
        downloads: List[DownloadHistory] = self.db.query(DownloadHistory).filter(
            DownloadHistory.student_id == student.id
        ).order_by(DownloadHistory.downloaded_at.desc()).all()

        # first-seen order, newest download first
        subjects = list(dict.fromkeys(d.note_subject for d in downloads))
        grades = {d.note_grade for d in downloads}

        year_ago = shift_months(now, -12)
        current_streak, max_streak = compute_streaks(
            (d.downloaded_at.date() for d in downloads), now.date()
        )

        recent_since = now - timedelta(days=RECENT_ACTIVITY_DAYS)
        recent_activity = [
            {
                "date": d.downloaded_at.date().isoformat(),
                "title": d.note_title,
                "subject": d.note_subject,
                "grade": d.note_grade,
            }
            for d in downloads
            if d.downloaded_at >= recent_since
        ]

        return {
            "overview": {
                "totalDownloads": len(downloads),
                "uniqueSubjects": len(subjects),
                "uniqueGrades": len(grades),
                "currentStreak": current_streak,
                "maxStreak": max_streak,
                "totalFileSize": sum(d.file_size or 0 for d in downloads),
            },
            "downloadsBySubject": dict(Counter(d.note_subject for d in downloads)),
            "monthlyDownloads": monthly_counts(d.downloaded_at for d in downloads if d.downloaded_at >= year_ago),
            "subjectPerformance": self._subject_performance(student, subjects[:SUBJECT_PERFORMANCE_LIMIT]),
            "recentActivity": recent_activity,
            "learningStreak": {"current": current_streak, "max": max_streak},
        }

    def _subject_performance(self, student: User, subjects: List[str]) -> dict:
        """Average rating the student gave, per subject they downloaded from."""
        performance = {}
        for subject in subjects:
            note_ids = [
                note_id for (note_id,) in self.db.query(Note.id).filter(
                    Note.subject == subject,
                    Note.is_active.is_(True),
                    Note.is_public.is_(True),
                )
            ]
            if not note_ids:
                continue
            ratings = [
                rating for (rating,) in self.db.query(Review.rating).filter(
                    Review.note_id.in_(note_ids),
                    Review.student_id == student.id,
                )
            ]
            if ratings:
                performance[subject] = {
                    "averageRating": round_rating(mean(ratings)),
                    "reviewsCount": len(ratings),
                    "notesCount": len(note_ids),
                }
        return performance

    def teacher_analytics(self, teacher: User) -> dict:
        now = self._now()
        notes: List[Note] = self.db.query(Note).filter(
            Note.uploaded_by == teacher.id
        ).order_by(Note.created_at.desc()).all()
        note_ids = [note.id for note in notes]

        downloads = []
        reviews = []
        unique_students = 0
        if note_ids:
            downloads = [
                moment for (moment,) in self.db.query(DownloadHistory.downloaded_at).filter(
                    DownloadHistory.note_id.in_(note_ids),
                    DownloadHistory.downloaded_at >= shift_months(now, -12),
                )
            ]
            reviews = self.db.query(Review.rating, Review.created_at).filter(Review.note_id.in_(note_ids)).all()
            unique_students = self.db.query(
                func.count(func.distinct(DownloadHistory.student_id))
            ).filter(DownloadHistory.note_id.in_(note_ids)).scalar() or 0

        top_notes = sorted(notes, key=lambda note: note.download_count or 0, reverse=True)[:TOP_NOTES_LIMIT]

        return {
            "overview": {
                "totalNotes": len(notes),
                "totalDownloads": sum(note.download_count or 0 for note in notes),
                "totalViews": sum(note.view_count or 0 for note in notes),
                "totalReviews": len(reviews),
                "averageRating": round_rating(mean(rating for rating, _ in reviews)),
                "uniqueStudents": unique_students,
            },
            "notesBySubject": dict(Counter(note.subject for note in notes)),
            "monthlyDownloads": monthly_counts(downloads),
            "monthlyReviews": monthly_counts(created for _, created in reviews if created),
            "topNotes": [
                {
                    "id": str(note.id),
                    "title": note.title,
                    "subject": note.subject,
                    "grade": note.grade,
                    "downloads": note.download_count or 0,
                    "views": note.view_count or 0,
                    "rating": note.average_rating or 0,
                    "createdAt": iso(note.created_at),
                }
                for note in top_notes
            ],
            "recentActivity": [
                {
                    "id": str(note.id),
                    "title": note.title,
                    "subject": note.subject,
                    "grade": note.grade,
                    "downloads": note.download_count or 0,
                    "createdAt": iso(note.created_at),
                }
                for note in notes[:RECENT_NOTES_LIMIT]
            ],
        }

    def platform(self) -> dict:
        visible = (Note.is_active.is_(True), Note.is_public.is_(True))

        popular_subjects = self.db.query(
            Note.subject, func.count(Note.id).label("count")
        ).filter(*visible).group_by(Note.subject).order_by(func.count(Note.id).desc()).limit(10).all()

        downloads_sum = func.coalesce(func.sum(Note.download_count), 0)
        top_teachers = self.db.query(
            User.id, User.name, func.count(Note.id), downloads_sum
        ).join(Note, Note.uploaded_by == User.id).filter(*visible).group_by(
            User.id, User.name
        ).order_by(downloads_sum.desc()).limit(10).all()

        return {
            "overview": {
                "totalNotes": self.db.query(Note).filter(*visible).count(),
                "totalUsers": self.db.query(User).filter(User.is_active.is_(True)).count(),
                "totalDownloads": self.db.query(DownloadHistory).count(),
                "totalReviews": self.db.query(Review).filter(Review.is_active.is_(True)).count(),
            },
            "popularSubjects": [{"subject": subject, "count": count} for subject, count in popular_subjects],
            "topTeachers": [
                {
                    "teacherId": str(teacher_id),
                    "teacherName": name,
                    "noteCount": note_count,
                    "totalDownloads": int(total),
                }
                for teacher_id, name, note_count, total in top_teachers
            ],
        }
