"""Role-specific profile variants.

A user is either a teacher or a student; each variant carries only the fields
that make sense for that role and is validated as a whole.
"""
from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, Field, field_validator


class TeacherProfile(BaseModel):
    role: Literal["teacher"] = "teacher"
    subject: str = Field(min_length=1)
    qualification: str = Field(min_length=1)
    experience: int = Field(ge=0)

    @field_validator("subject", "qualification")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value


class StudentProfile(BaseModel):
    role: Literal["student"] = "student"
    grade: str = Field(min_length=1)
    interests: List[str] = Field(default_factory=list)

    @field_validator("grade")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("interests")
    @classmethod
    def _clean_interests(cls, value: List[str]) -> List[str]:
        return [item.strip() for item in value if item and item.strip()]


UserProfile = Annotated[Union[TeacherProfile, StudentProfile], Field(discriminator="role")]

PROFILE_FIELDS = {
    "teacher": ("subject", "qualification", "experience"),
    "student": ("grade", "interests"),
}
REQUIRED_PROFILE_FIELDS = {
    "teacher": ("subject", "qualification", "experience"),
    "student": ("grade",),
}
