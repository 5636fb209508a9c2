"""Rating statistics for a note, derived from its visible reviews.

Only reviews that are both active and approved count. The average is rounded
with ``round_rating`` both here and on the note so the two never drift.
"""
import logging
from typing import Dict

from pydantic import Field
from sqlalchemy.orm import Session

from smartstudy.models.note import Note
from smartstudy.models.review import CATEGORY_FLAGS, Review
from smartstudy.schemas.base import CamelModel
from smartstudy.utils.numbers import mean, round_rating

logger = logging.getLogger("smartstudy.reviews.statistics")


def _empty_distribution() -> Dict[int, int]:
    return {star: 0 for star in range(1, 6)}


def _empty_categories() -> Dict[str, int]:
    return {flag: 0 for flag in CATEGORY_FLAGS}


class ReviewStatistics(CamelModel):
    average_rating: float = 0.0
    total_reviews: int = 0
    rating_distribution: Dict[int, int] = Field(default_factory=_empty_distribution)
    categories_stats: Dict[str, int] = Field(default_factory=_empty_categories)


def compute_statistics(db: Session, note_id) -> ReviewStatistics:
    """Aggregate the active, approved reviews of ``note_id``.

    Returns zeroed statistics when there are none. Pending changes in the
    session must be flushed by the caller.
    """
    reviews = db.query(Review).filter(
        Review.note_id == note_id,
        Review.is_active.is_(True),
        Review.is_approved.is_(True),
    ).all()

    stats = ReviewStatistics()
    if not reviews:
        return stats

    for review in reviews:
        if review.rating in stats.rating_distribution:
            stats.rating_distribution[review.rating] += 1
        for flag in CATEGORY_FLAGS:
            if getattr(review, flag):
                stats.categories_stats[flag] += 1

    stats.total_reviews = len(reviews)
    stats.average_rating = round_rating(mean(review.rating for review in reviews))
    return stats


def refresh_note_rating(db: Session, note_id) -> ReviewStatistics:
    """Recompute the statistics and copy average/count onto the note.

    Flushes first so the query sees the triggering write; the caller commits.
    """
    db.flush()
    stats = compute_statistics(db, note_id)

    note = db.get(Note, note_id)
    if note is not None:
        note.average_rating = stats.average_rating
        note.rating_count = stats.total_reviews
        logger.debug(
            "Note %s rating refreshed: %.1f over %d reviews",
            note_id, stats.average_rating, stats.total_reviews,
        )
    return stats
