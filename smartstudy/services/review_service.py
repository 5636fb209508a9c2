"""Review service.

Every operation that can change which reviews count toward a note's rating
(create, update, delete, vote, report) runs the same visible sequence:

    write review -> refresh_note_rating() -> commit

The three steps share one session and one commit, so a failure before the
commit leaves nothing behind. Two concurrent writers on the same note are not
serialized: whichever commits last decides the stored average until the next
review change recomputes it.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from smartstudy.core.exceptions import AuthorizationError, ConflictError, ValidationError
from smartstudy.db.lookup import get_or_404, parse_uuid
from smartstudy.models.note import Note
from smartstudy.models.review import Review
from smartstudy.models.user import User
from smartstudy.services.review_statistics import ReviewStatistics, compute_statistics, refresh_note_rating
from smartstudy.utils.pagination import Page, paginate

logger = logging.getLogger("smartstudy.reviews")

SORT_FIELDS = {
    "createdAt": Review.created_at,
    "rating": Review.rating,
    "helpfulVotes": Review.helpful_votes,
}

DUPLICATE_REVIEW_MESSAGE = "You have already reviewed this note. Use update instead."


class ReviewService:
    def __init__(self, db: Session):
        self.db = db

    def _visible_for_note(self, note_id):
        return self.db.query(Review).filter(
            Review.note_id == note_id,
            Review.is_active.is_(True),
            Review.is_approved.is_(True),
        )

    def list_for_note(
        self,
        note_id: str,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> tuple[Page, ReviewStatistics]:
        note = get_or_404(self.db, Note, note_id, "Note")
        column = SORT_FIELDS.get(sort_by, Review.created_at)
        order = column.asc() if sort_order == "asc" else column.desc()
        result = paginate(self._visible_for_note(note.id).order_by(order), page, limit)
        return result, compute_statistics(self.db, note.id)

    def statistics(self, note_id: str) -> ReviewStatistics:
        note = get_or_404(self.db, Note, note_id, "Note")
        return compute_statistics(self.db, note.id)

    def list_for_student(self, student_id, page: int = 1, limit: int = 10, visible_only: bool = True) -> Page:
        query = self.db.query(Review).filter(
            Review.student_id == parse_uuid(student_id),
            Review.is_active.is_(True),
        )
        if visible_only:
            query = query.filter(Review.is_approved.is_(True))
        return paginate(query.order_by(Review.created_at.desc()), page, limit)

    def create(
        self,
        student: User,
        note_id: str,
        rating: int,
        comment: Optional[str] = None,
        categories: Optional[dict] = None,
    ) -> Review:
        note = get_or_404(self.db, Note, note_id, "Note")
        if not note.is_available:
            raise ValidationError("Note is not available for review")

        existing = self.db.query(Review).filter(
            Review.note_id == note.id,
            Review.student_id == student.id,
        ).first()
        if existing:
            raise ConflictError(DUPLICATE_REVIEW_MESSAGE)

        review = Review(
            note_id=note.id,
            student_id=student.id,
            rating=rating,
            comment=comment or "",
        )
        review.categories = categories or {}
        self.db.add(review)

        try:
            refresh_note_rating(self.db, note.id)
            self.db.commit()
        except IntegrityError:
            # lost a race with a concurrent create for the same pair
            self.db.rollback()
            raise ConflictError(DUPLICATE_REVIEW_MESSAGE)

        self.db.refresh(review)
        logger.info("Review %s created by %s on note %s", review.id, student.id, note.id)
        return review

    def _owned(self, review_id: str, student: User, action: str) -> Review:
        review = get_or_404(self.db, Review, review_id, "Review")
        if review.student_id != student.id:
            raise AuthorizationError(f"You can only {action} your own reviews")
        return review

    def update(self, review_id: str, student: User, changes: dict) -> Review:
        review = self._owned(review_id, student, "update")

        if changes.get("rating") is not None:
            review.rating = changes["rating"]
        if changes.get("comment") is not None:
            review.comment = changes["comment"]
        if changes.get("categories") is not None:
            review.categories = changes["categories"]

        refresh_note_rating(self.db, review.note_id)
        self.db.commit()
        self.db.refresh(review)
        return review

    def delete(self, review_id: str, student: User) -> None:
        review = self._owned(review_id, student, "delete")
        note_id = review.note_id

        self.db.delete(review)
        refresh_note_rating(self.db, note_id)
        self.db.commit()
        logger.info("Review %s deleted by %s", review_id, student.id)

    def vote(self, review_id: str, voter: User, helpful: bool) -> Review:
        review = get_or_404(self.db, Review, review_id, "Review")

        review.total_votes = (review.total_votes or 0) + 1
        if helpful:
            review.helpful_votes = (review.helpful_votes or 0) + 1

        refresh_note_rating(self.db, review.note_id)
        self.db.commit()
        self.db.refresh(review)
        logger.debug("Vote (helpful=%s) by %s on review %s", helpful, voter.id, review.id)
        return review

    def report(self, review_id: str, reporter: User) -> Review:
        """Hide a review from statistics until a moderator looks at it."""
        review = get_or_404(self.db, Review, review_id, "Review")

        review.is_approved = False
        review.moderation_note = (
            f"Reported by user {reporter.id} on {datetime.now(timezone.utc).isoformat()}"
        )[:200]

        refresh_note_rating(self.db, review.note_id)
        self.db.commit()
        self.db.refresh(review)
        logger.info("Review %s reported by %s", review.id, reporter.id)
        return review
