"""
Smart Study Platform - Test Configuration and Fixtures
"""
from datetime import datetime
from pathlib import Path

import pytest
from faker import Faker
from fastapi.testclient import TestClient

from smartstudy.core.config import Settings
from smartstudy.core.security import create_user_token, get_password_hash
from smartstudy.main import create_app
from smartstudy.models.download_history import DownloadHistory
from smartstudy.models.note import Note
from smartstudy.models.user import STUDENT, TEACHER, User
from smartstudy.schemas.profiles import StudentProfile, TeacherProfile
from smartstudy.services.review_service import ReviewService

fake = Faker()

DEFAULT_PASSWORD = "password123"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
        SECRET_KEY="test-secret-key-for-testing-only",
        BCRYPT_ROUNDS=4,
        RATE_LIMIT_ENABLED=False,
        UPLOAD_DIR=str(tmp_path / "uploads"),
        S3_BUCKET=None,
        SMTP_USER=None,
        SMTP_PASSWORD=None,
        ENVIRONMENT="development",
        FRONTEND_URL="http://frontend.test",
    )


@pytest.fixture
def app(settings: Settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    """Test client; entering it runs the lifespan, which creates the tables."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db(client, app):
    """A session of its own, committed by the factories below."""
    session = app.state.context.session()
    yield session
    session.close()


@pytest.fixture
def make_user(db, settings):
    def _make(role: str = STUDENT, password: str = DEFAULT_PASSWORD, **fields) -> User:
        user = User(
            name=fields.pop("name", fake.name()[:50]),
            email=fields.pop("email", f"{fake.unique.user_name()}@school.edu"),
            password_hash=get_password_hash(password, settings),
            role=role,
        )
        if role == TEACHER:
            profile = TeacherProfile(
                subject=fields.pop("subject", "Mathematics"),
                qualification=fields.pop("qualification", "MSc"),
                experience=fields.pop("experience", 5),
            )
        else:
            profile = StudentProfile(
                grade=fields.pop("grade", "10"),
                interests=fields.pop("interests", ["science"]),
            )
        user.apply_profile(profile)
        for key, value in fields.items():
            setattr(user, key, value)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def teacher(make_user) -> User:
    return make_user(TEACHER)


@pytest.fixture
def other_teacher(make_user) -> User:
    return make_user(TEACHER)


@pytest.fixture
def student(make_user) -> User:
    return make_user(STUDENT)


@pytest.fixture
def other_student(make_user) -> User:
    return make_user(STUDENT)


@pytest.fixture
def auth_headers(settings):
    """Build an Authorization header for a user."""
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_user_token(user, settings)}"}

    return _headers


@pytest.fixture
def make_note(db, settings):
    def _make(teacher: User, with_file: bool = False, tags=("algebra",), **fields) -> Note:
        original_name = fields.pop("original_file_name", "equations.txt")
        note = Note(
            title=fields.pop("title", "Linear equations"),
            description=fields.pop("description", "Worked examples of linear equations"),
            subject=fields.pop("subject", "Mathematics"),
            grade=fields.pop("grade", "10"),
            category=fields.pop("category", "lecture-notes"),
            difficulty=fields.pop("difficulty", "intermediate"),
            uploaded_by=teacher.id,
            **fields,
        )
        note.tags = list(tags)
        if with_file:
            folder = Path(settings.UPLOAD_DIR) / "notes"
            folder.mkdir(parents=True, exist_ok=True)
            path = (folder / f"{fake.uuid4()}.txt").resolve()
            path.write_bytes(b"x + 1 = 2")
            note.file_name = path.name
            note.original_file_name = original_name
            note.file_path = str(path)
            note.file_size = path.stat().st_size
            note.file_type = "txt"
            note.mime_type = "text/plain"
            note.storage_provider = "local"
            note.storage_key = str(path)
        db.add(note)
        db.commit()
        db.refresh(note)
        return note

    return _make


@pytest.fixture
def make_review(db):
    def _make(note: Note, student: User, rating: int, **categories):
        return ReviewService(db).create(student, str(note.id), rating, categories=categories)

    return _make


@pytest.fixture
def make_download(db):
    """Write a download-history row directly, with an optional fixed timestamp."""
    def _make(student: User, note: Note = None, downloaded_at: datetime = None, **fields) -> DownloadHistory:
        record = DownloadHistory(
            student_id=student.id,
            note_id=note.id if note is not None else None,
            file_name=fields.pop("file_name", "equations.txt"),
            file_size=fields.pop("file_size", 100),
            file_type=fields.pop("file_type", "txt"),
            note_title=fields.pop("note_title", note.title if note is not None else "Loose handout"),
            note_subject=fields.pop("note_subject", note.subject if note is not None else "Mathematics"),
            note_grade=fields.pop("note_grade", note.grade if note is not None else "10"),
            uploaded_by=note.uploaded_by if note is not None else None,
            **fields,
        )
        if downloaded_at is not None:
            record.downloaded_at = downloaded_at
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    return _make
