"""
Python client tests, driven against the app through the test client
"""
import pytest

from smartstudy.client import APIError, StudyPlatformClient


@pytest.fixture
def api(client):
    return StudyPlatformClient(client=client)


def test_teacher_and_student_journey(client, api):
    teacher = StudyPlatformClient(client=client)
    teacher.register(
        "Ada Lovelace", "ada@school.edu", "secret1", role="teacher",
        subject="Math", qualification="MSc", experience=3,
    )
    assert teacher.user["role"] == "teacher"

    uploaded = teacher.upload_note(
        file=("algebra.txt", b"a + b = c", "text/plain"),
        title="Algebra intro",
        description="First steps with variables",
        subject="Math",
        grade="8",
        tags=["algebra", "basics"],
    )
    note_id = uploaded["data"]["id"]
    assert uploaded["data"]["tags"] == ["algebra", "basics"]

    api.register("Sam Student", "sam@school.edu", "secret1", grade="8")
    assert api.download_note(note_id) == b"a + b = c"
    review = api.create_review(note_id, 5, comment="Great", categories={"clear": True})
    assert review["data"]["rating"] == 5

    assert api.get_note(note_id)["data"]["averageRating"] == 5.0
    assert api.download_history()["pagination"]["totalItems"] == 1
    assert api.student_progress()["data"]["overview"]["totalDownloads"] == 1
    assert teacher.teacher_analytics()["data"]["overview"]["totalReviews"] == 1
    assert api.list_notes(tags=["basics"])["total"] == 1


def test_api_error_carries_status_and_code(api):
    api.register("Sam Student", "sam@school.edu", "secret1", grade="8")

    with pytest.raises(APIError) as excinfo:
        api.register("Sam Again", "sam@school.edu", "secret1", grade="8")

    assert excinfo.value.status_code == 400
    assert excinfo.value.code == "CONFLICT"
    assert excinfo.value.message == "User with this email already exists"


def test_logout_forgets_token(api):
    api.register("Sam Student", "sam@school.edu", "secret1", grade="8")
    assert api.me()["data"]["email"] == "sam@school.edu"

    api.logout()

    assert api.token is None
    with pytest.raises(APIError) as excinfo:
        api.me()
    assert excinfo.value.status_code == 401
