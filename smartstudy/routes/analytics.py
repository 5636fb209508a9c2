"""Analytics routes."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from smartstudy.core.permissions import get_current_user, require_student, require_teacher
from smartstudy.db.sessions import get_db
from smartstudy.models.user import User
from smartstudy.services.analytics_service import AnalyticsService


router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("/student-progress")
def student_progress(current_user: User = Depends(require_student), db: Session = Depends(get_db)):
    return {"success": True, "data": AnalyticsService(db).student_progress(current_user)}


@router.get("/teacher-analytics")
def teacher_analytics(current_user: User = Depends(require_teacher), db: Session = Depends(get_db)):
    return {"success": True, "data": AnalyticsService(db).teacher_analytics(current_user)}


@router.get("/platform")
def platform_analytics(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"success": True, "data": AnalyticsService(db).platform()}
