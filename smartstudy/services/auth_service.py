"""Account service: registration, login, profile and password lifecycle."""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from smartstudy.core.config import Settings
from smartstudy.core.exceptions import AuthenticationError, ConflictError, ValidationError
from smartstudy.core.security import (
    generate_reset_token,
    get_password_hash,
    hash_reset_token,
    verify_password,
)
from smartstudy.models.user import ROLES, User
from smartstudy.schemas.profiles import PROFILE_FIELDS, REQUIRED_PROFILE_FIELDS, UserProfile
from smartstudy.services.email_service import EmailService

logger = logging.getLogger("smartstudy.auth")

MIN_PASSWORD_LENGTH = 6

_profile_adapter = TypeAdapter(UserProfile)


@dataclass
class PasswordResetRequest:
    """Outcome of a forgot-password call; ``reset_url`` is set only when mail was not sent."""

    message: str
    reset_url: Optional[str] = None


def build_profile(role: str, values: dict) -> UserProfile:
    """Validate the role-specific fields as one profile variant."""
    try:
        return _profile_adapter.validate_python({**values, "role": role})
    except PydanticValidationError as e:
        # drop the variant tag from locations ("teacher.subject" -> "subject")
        errors = [{**err, "loc": tuple(p for p in err["loc"] if p not in ROLES)} for err in e.errors()]
        raise ValidationError.from_errors(errors)


def _check_new_password(password: str, message: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(message, field="password")


class AuthService:
    def __init__(self, db: Session, settings: Settings, email_service: Optional[EmailService] = None):
        self.db = db
        self.settings = settings
        self.email_service = email_service

    def _by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.strip().lower()).first()

    def register(self, name: str, email: str, password: str, role: str, profile_values: dict, bio: str = "") -> User:
        if self._by_email(email):
            raise ConflictError("User with this email already exists")

        missing = [
            key for key in REQUIRED_PROFILE_FIELDS[role]
            if profile_values.get(key) is None or profile_values.get(key) == ""
        ]
        if missing:
            raise ValidationError(f"Missing required {role} fields: {', '.join(missing)}")

        profile = build_profile(role, {k: v for k, v in profile_values.items() if k in PROFILE_FIELDS[role]})

        user = User(
            name=name.strip(),
            email=email,
            password_hash=get_password_hash(password, self.settings),
            role=role,
            bio=bio or "",
        )
        user.apply_profile(profile)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("User with this email already exists")

        self.db.refresh(user)
        logger.info("Registered %s %s", role, user.id)
        return user

    def login(self, email: str, password: str) -> User:
        user = self._by_email(email)
        if not user:
            raise AuthenticationError("Invalid credentials")

        if not user.is_active:
            raise AuthenticationError("Account has been deactivated. Please contact support.")

        if not verify_password(password, user.password_hash, self.settings):
            raise AuthenticationError("Invalid credentials")

        user.last_login = datetime.utcnow()
        self.db.commit()
        self.db.refresh(user)
        return user

    def update_profile(self, user: User, changes: dict) -> User:
        """Update name, bio and the fields of the caller's own profile variant.

        Role, email and fields of the other variant are ignored.
        """
        if changes.get("name") is not None:
            name = changes["name"].strip()
            if not 2 <= len(name) <= 50:
                raise ValidationError("Name must be between 2 and 50 characters", field="name")
            user.name = name
        if changes.get("bio") is not None:
            user.bio = changes["bio"]

        variant_changes = {
            key: changes[key] for key in PROFILE_FIELDS[user.role] if changes.get(key) is not None
        }
        if variant_changes:
            merged = {**user.profile.model_dump(exclude={"role"}), **variant_changes}
            user.apply_profile(build_profile(user.role, merged))

        self.db.commit()
        self.db.refresh(user)
        return user

    def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.password_hash, self.settings):
            raise ValidationError("Current password is incorrect")
        _check_new_password(new_password, "New password must be at least 6 characters long")

        user.password_hash = get_password_hash(new_password, self.settings)
        self.db.commit()
        logger.info("Password changed for user %s", user.id)

    async def forgot_password(self, email: str) -> PasswordResetRequest:
        """Issue a reset token. The outcome never reveals whether the account exists."""
        user = self._by_email(email)
        if not user:
            return PasswordResetRequest("If an account exists, an email has been sent")

        raw_token, digest, expires = generate_reset_token(self.settings)
        user.password_reset_token = digest
        user.password_reset_expire = expires
        self.db.commit()

        reset_url = f"{self.settings.FRONTEND_URL.rstrip('/')}/reset-password/{raw_token}"
        sent = False
        if self.email_service is not None:
            sent = await self.email_service.send_password_reset_email(
                user.email, user.name, reset_url, self.settings.PASSWORD_RESET_EXPIRE_MINUTES
            )

        if sent:
            return PasswordResetRequest("Reset link sent to email")
        if self.settings.ENVIRONMENT == "production":
            logger.warning("Password reset email for user %s could not be sent", user.id)
            return PasswordResetRequest("If an account exists, an email has been sent")
        return PasswordResetRequest("Email sending failed, use resetUrl", reset_url=reset_url)

    def reset_password(self, token: str, new_password: str) -> User:
        if not token:
            raise ValidationError("Invalid or missing token")
        _check_new_password(new_password, "New password must be at least 6 characters long")

        user = self.db.query(User).filter(
            User.password_reset_token == hash_reset_token(token),
            User.password_reset_expire > datetime.utcnow(),
        ).first()
        if not user:
            raise ValidationError("Reset token is invalid or has expired")

        user.password_hash = get_password_hash(new_password, self.settings)
        user.password_reset_token = None
        user.password_reset_expire = None
        self.db.commit()
        logger.info("Password reset for user %s", user.id)
        return user
