"""Authentication routes."""
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Request, status
from pydantic import EmailStr, Field
from sqlalchemy.orm import Session

from smartstudy.core.config import Settings
from smartstudy.core.permissions import get_current_user
from smartstudy.core.security import create_user_token, expires_in_label
from smartstudy.db.sessions import get_context, get_db, get_settings
from smartstudy.models.user import User
from smartstudy.schemas.base import CamelModel
from smartstudy.schemas.profiles import PROFILE_FIELDS
from smartstudy.schemas.serializers import public_user
from smartstudy.services.auth_service import AuthService


router = APIRouter(prefix="/auth", tags=["Authentication"])


# Request schemas
class RegisterRequest(CamelModel):
    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6)
    role: Literal["teacher", "student"] = "student"
    bio: Optional[str] = Field(None, max_length=500)
    # teacher profile
    subject: Optional[str] = None
    qualification: Optional[str] = None
    experience: Optional[int] = None
    # student profile
    grade: Optional[str] = None
    interests: Optional[List[str]] = None


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class ProfileUpdateRequest(CamelModel):
    name: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=500)
    subject: Optional[str] = None
    qualification: Optional[str] = None
    experience: Optional[int] = None
    grade: Optional[str] = None
    interests: Optional[List[str]] = None


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    new_password: str = ""


def _session_payload(user: User, settings: Settings, message: str) -> dict:
    return {
        "success": True,
        "message": message,
        "token": create_user_token(user, settings),
        "user": public_user(user),
        "expiresIn": expires_in_label(settings),
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(body: RegisterRequest, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    """
    Register a teacher or a student.

    The role-specific profile fields are validated as one variant; missing
    required ones are listed in the error message.
    """
    service = AuthService(db, settings)
    user = service.register(
        body.name,
        body.email,
        body.password,
        body.role,
        body.model_dump(include=set(PROFILE_FIELDS[body.role]), exclude_none=True),
        bio=body.bio or "",
    )
    return _session_payload(user, settings, f"{body.role.capitalize()} registered successfully")


@router.post("/login")
def login(body: LoginRequest, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    user = AuthService(db, settings).login(body.email, body.password)
    return _session_payload(user, settings, "Login successful")


@router.get("/me")
def get_me(current_user: User = Depends(get_current_user)):
    return {"success": True, "data": public_user(current_user)}


@router.put("/profile")
def update_profile(
    body: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = AuthService(db, settings).update_profile(current_user, body.model_dump(exclude_none=True))
    return {"success": True, "message": "Profile updated successfully", "data": public_user(user)}


@router.put("/password")
def change_password(
    body: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    AuthService(db, settings).change_password(current_user, body.current_password, body.new_password)
    return {"success": True, "message": "Password changed successfully"}


@router.post("/logout")
def logout(current_user: User = Depends(get_current_user)):
    # tokens are stateless; the client drops its copy
    return {"success": True, "message": "Logged out successfully"}


@router.post("/forgot-password")
async def forgot_password(body: ForgotPasswordRequest, request: Request, db: Session = Depends(get_db)):
    context = get_context(request)
    result = await AuthService(db, context.settings, context.email).forgot_password(body.email)

    response = {"success": True, "message": result.message}
    if result.reset_url:
        response["data"] = {"resetUrl": result.reset_url}
    return response


@router.post("/reset-password/{token}")
def reset_password(
    token: str,
    body: ResetPasswordRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    AuthService(db, settings).reset_password(token, body.new_password)
    return {"success": True, "message": "Password has been reset successfully"}
