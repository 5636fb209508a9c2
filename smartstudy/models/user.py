"""User model."""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text, Integer, Boolean, JSON, Uuid
from sqlalchemy.orm import relationship, validates
from smartstudy.db.base import Base
from smartstudy.schemas.profiles import StudentProfile, TeacherProfile, UserProfile


TEACHER = "teacher"
STUDENT = "student"
ROLES = (TEACHER, STUDENT)


class User(Base):
    """A teacher or a student account.

    The role is fixed when the row is created; the role-specific columns are
    populated from a ``TeacherProfile`` or ``StudentProfile`` variant.
    """

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(50), nullable=False)
    email = Column(String(150), unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    role = Column(String(20), nullable=False, default=STUDENT, index=True)
    bio = Column(String(500), default="")
    profile_picture = Column(String, default="")

    # Teacher variant
    subject = Column(String(100))
    qualification = Column(String(200))
    experience = Column(Integer)

    # Student variant
    grade = Column(String(50))
    interests = Column(JSON, default=list)

    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, default=datetime.utcnow)
    password_reset_token = Column(String(64), index=True)
    password_reset_expire = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    notes = relationship("Note", back_populates="teacher")
    reviews = relationship("Review", back_populates="student", foreign_keys="Review.student_id")

    @validates("email")
    def _normalize_email(self, key, value):
        return value.strip().lower() if value else value

    @validates("role")
    def _freeze_role(self, key, value):
        if value not in ROLES:
            raise ValueError(f"Role must be one of: {', '.join(ROLES)}")
        if self.role is not None and self.role != value:
            raise ValueError("Role cannot be changed after registration")
        return value

    @property
    def is_teacher(self) -> bool:
        return self.role == TEACHER

    @property
    def is_student(self) -> bool:
        return self.role == STUDENT

    @property
    def profile(self) -> UserProfile:
        if self.is_teacher:
            return TeacherProfile(
                subject=self.subject or "",
                qualification=self.qualification or "",
                experience=self.experience or 0,
            )
        return StudentProfile(grade=self.grade or "", interests=list(self.interests or []))

    def apply_profile(self, profile: UserProfile) -> None:
        """Copy a profile variant onto the role columns; the variant must match the role."""
        if profile.role != self.role:
            raise ValueError(f"A {self.role} cannot take a {profile.role} profile")
        for field, value in profile.model_dump(exclude={"role"}).items():
            setattr(self, field, value)
