"""Review routes."""
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field, StrictBool, field_validator
from sqlalchemy.orm import Session

from smartstudy.core.permissions import get_current_user, require_student
from smartstudy.db.sessions import get_db
from smartstudy.models.user import User
from smartstudy.schemas.base import CamelModel
from smartstudy.schemas.serializers import review_to_dict
from smartstudy.services.review_service import ReviewService


router = APIRouter(prefix="/reviews", tags=["Reviews"])


# Request schemas
class ReviewCategories(CamelModel):
    helpful: Optional[StrictBool] = None
    clear: Optional[StrictBool] = None
    complete: Optional[StrictBool] = None
    accurate: Optional[StrictBool] = None


class CreateReviewRequest(CamelModel):
    note_id: str = Field(min_length=1)
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=500)
    categories: Optional[ReviewCategories] = None


class UpdateReviewRequest(CamelModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=500)
    categories: Optional[ReviewCategories] = None


class VoteRequest(CamelModel):
    helpful: bool

    @field_validator("helpful", mode="before")
    @classmethod
    def _strict(cls, value):
        if not isinstance(value, bool):
            raise ValueError("Helpful vote must be true or false")
        return value


def _categories(categories: Optional[ReviewCategories]) -> Optional[dict]:
    return categories.model_dump(exclude_none=True) if categories else None


@router.get("/my-reviews")
def my_reviews(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    current_user: User = Depends(require_student),
    db: Session = Depends(get_db),
):
    """The caller's reviews, including ones hidden by a report."""
    result = ReviewService(db).list_for_student(current_user.id, page, limit, visible_only=False)
    return result.envelope([review_to_dict(review) for review in result.items])


@router.get("/student/{student_id}")
def student_reviews(
    student_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    result = ReviewService(db).list_for_student(student_id, page, limit)
    return result.envelope([review_to_dict(review) for review in result.items])


@router.get("/note/{note_id}")
def note_reviews(
    note_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    sort_by: Literal["createdAt", "rating", "helpfulVotes"] = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    db: Session = Depends(get_db),
):
    result, statistics = ReviewService(db).list_for_note(note_id, page, limit, sort_by, sort_order)
    return result.envelope(
        [review_to_dict(review) for review in result.items],
        statistics=statistics.to_json_dict(),
    )


@router.get("/stats/{note_id}")
def review_stats(note_id: str, db: Session = Depends(get_db)):
    return {"success": True, "data": ReviewService(db).statistics(note_id).to_json_dict()}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_review(
    body: CreateReviewRequest,
    current_user: User = Depends(require_student),
    db: Session = Depends(get_db),
):
    review = ReviewService(db).create(
        current_user, body.note_id, body.rating, body.comment, _categories(body.categories)
    )
    return {"success": True, "message": "Review created successfully", "data": review_to_dict(review)}


@router.put("/{review_id}")
def update_review(
    review_id: str,
    body: UpdateReviewRequest,
    current_user: User = Depends(require_student),
    db: Session = Depends(get_db),
):
    changes = body.model_dump(exclude_none=True, exclude={"categories"})
    changes["categories"] = _categories(body.categories)
    review = ReviewService(db).update(review_id, current_user, changes)
    return {"success": True, "message": "Review updated successfully", "data": review_to_dict(review)}


@router.delete("/{review_id}")
def delete_review(
    review_id: str,
    current_user: User = Depends(require_student),
    db: Session = Depends(get_db),
):
    ReviewService(db).delete(review_id, current_user)
    return {"success": True, "message": "Review deleted successfully"}


@router.post("/{review_id}/vote")
def vote_review(
    review_id: str,
    body: VoteRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    review = ReviewService(db).vote(review_id, current_user, body.helpful)
    return {
        "success": True,
        "message": "Vote recorded successfully",
        "data": {
            "helpfulVotes": review.helpful_votes,
            "totalVotes": review.total_votes,
            "helpfulnessPercentage": review.helpfulness_percentage,
        },
    }


@router.post("/{review_id}/report")
def report_review(
    review_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ReviewService(db).report(review_id, current_user)
    return {"success": True, "message": "Review reported successfully"}
