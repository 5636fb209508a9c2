"""
Note API tests: browsing, uploads, ownership and downloads
"""
import asyncio
from io import BytesIO
from pathlib import Path
from urllib.parse import quote
from uuid import UUID

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from smartstudy.core.exceptions import FileTooLargeError
from smartstudy.models.download_history import DownloadHistory
from smartstudy.models.note import Note
from smartstudy.models.review import Review
from smartstudy.routes.notes import _read_upload


NOTE_FORM = {
    "title": "Photosynthesis basics",
    "description": "How plants turn light into chemical energy",
    "subject": "Biology",
    "grade": "9",
    "tags": "Plants, Energy ,",
}


class TestUpload:
    def test_upload_without_file(self, client, teacher, auth_headers):
        response = client.post("/api/notes", data=NOTE_FORM, headers=auth_headers(teacher))

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Note uploaded successfully"
        data = body["data"]
        assert data["file"] is None
        assert data["tags"] == ["plants", "energy"]
        assert data["category"] == "lecture-notes"
        assert data["difficulty"] == "intermediate"
        assert data["isPublic"] is True
        assert data["uploadedBy"]["id"] == str(teacher.id)
        assert data["averageRating"] == 0.0

    def test_upload_with_text_file(self, client, settings, teacher, auth_headers):
        response = client.post(
            "/api/notes",
            data={**NOTE_FORM, "isPublic": "false", "category": "quiz"},
            files={"file": ("My Notes.txt", b"chlorophyll", "text/plain")},
            headers=auth_headers(teacher),
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["isPublic"] is False
        assert data["category"] == "quiz"
        assert data["file"]["originalFileName"] == "My Notes.txt"
        assert data["file"]["fileType"] == "txt"
        assert data["file"]["fileSize"] == len(b"chlorophyll")
        assert data["file"]["storageProvider"] == "local"
        assert data["file"]["fileName"].startswith("My-Notes-")
        assert (Path(settings.UPLOAD_DIR) / "notes" / data["file"]["fileName"]).read_bytes() == b"chlorophyll"

    def test_file_too_large(self, client, teacher, auth_headers):
        content = b"a" * (15 * 1024 * 1024)

        response = client.post(
            "/api/notes",
            data=NOTE_FORM,
            files={"file": ("big.txt", content, "text/plain")},
            headers=auth_headers(teacher),
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "FILE_TOO_LARGE"
        assert error["message"].startswith("File too large")

    def test_oversized_upload_is_refused_before_reading(self):
        upload = UploadFile(BytesIO(b"abc"), size=2048, filename="big.txt")

        with pytest.raises(FileTooLargeError):
            asyncio.run(_read_upload(upload, max_size=1024))

        assert upload.file.tell() == 0

    def test_disallowed_extension(self, client, teacher, auth_headers):
        response = client.post(
            "/api/notes",
            data=NOTE_FORM,
            files={"file": ("virus.exe", b"MZ", "application/octet-stream")},
            headers=auth_headers(teacher),
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_FILE_TYPE"
        assert "You uploaded: exe" in error["message"]

    def test_mime_mismatch(self, client, teacher, auth_headers):
        response = client.post(
            "/api/notes",
            data=NOTE_FORM,
            files={"file": ("slides.pdf", b"%PDF", "image/png")},
            headers=auth_headers(teacher),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_FILE_TYPE"

    def test_invalid_fields_are_reported_together(self, client, teacher, auth_headers):
        response = client.post(
            "/api/notes",
            data={**NOTE_FORM, "title": "ab", "description": "short", "category": "poster"},
            headers=auth_headers(teacher),
        )

        assert response.status_code == 400
        message = response.json()["error"]["message"]
        assert "Title must be between 3 and 100 characters" in message
        assert "Description must be between 10 and 1000 characters" in message
        assert "Invalid category" in message

    def test_missing_subject(self, client, teacher, auth_headers):
        form = {key: value for key, value in NOTE_FORM.items() if key != "subject"}

        response = client.post("/api/notes", data=form, headers=auth_headers(teacher))

        assert response.status_code == 400
        assert "subject" in response.json()["error"]["message"]

    def test_student_cannot_upload(self, client, student, auth_headers):
        response = client.post("/api/notes", data=NOTE_FORM, headers=auth_headers(student))

        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Access denied. Teacher access required."

    def test_anonymous_cannot_upload(self, client):
        response = client.post("/api/notes", data=NOTE_FORM)

        assert response.status_code == 401


class TestOwnership:
    def test_other_teacher_cannot_update(self, client, teacher, other_teacher, make_note, auth_headers):
        note = make_note(teacher)

        response = client.put(f"/api/notes/{note.id}", data={"title": "Hijacked"}, headers=auth_headers(other_teacher))

        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Access denied. You can only modify your own notes."

    def test_other_teacher_cannot_delete(self, client, db, teacher, other_teacher, make_note, auth_headers):
        note = make_note(teacher)

        response = client.delete(f"/api/notes/{note.id}", headers=auth_headers(other_teacher))

        assert response.status_code == 403
        db.expire_all()
        assert db.get(Note, note.id) is not None

    def test_student_gets_role_error_before_ownership(self, client, teacher, student, make_note, auth_headers):
        note = make_note(teacher)

        response = client.delete(f"/api/notes/{note.id}", headers=auth_headers(student))

        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Access denied. Teacher access required."

    def test_update_missing_note(self, client, teacher, auth_headers):
        response = client.put("/api/notes/not-a-uuid", data={"title": "Anything"}, headers=auth_headers(teacher))

        assert response.status_code == 404

    def test_owner_updates_selected_fields(self, client, teacher, make_note, auth_headers):
        note = make_note(teacher)

        response = client.put(
            f"/api/notes/{note.id}",
            data={"title": "Quadratic equations", "tags": "Quadratics", "difficulty": "advanced"},
            headers=auth_headers(teacher),
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["title"] == "Quadratic equations"
        assert data["tags"] == ["quadratics"]
        assert data["difficulty"] == "advanced"
        assert data["description"] == "Worked examples of linear equations"

    def test_replacing_file_removes_old_one(self, client, teacher, make_note, auth_headers):
        note = make_note(teacher, with_file=True)
        old_path = Path(note.file_path)
        assert old_path.exists()

        response = client.put(
            f"/api/notes/{note.id}",
            files={"file": ("revised.txt", b"x = 1", "text/plain")},
            headers=auth_headers(teacher),
        )

        assert response.status_code == 200
        assert response.json()["data"]["file"]["originalFileName"] == "revised.txt"
        assert not old_path.exists()

    def test_failed_replace_keeps_old_file(self, client, db, teacher, make_note, auth_headers, monkeypatch):
        note = make_note(teacher, with_file=True)
        old_path = Path(note.file_path)

        def failing_commit(session):
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        monkeypatch.setattr(Session, "commit", failing_commit)
        with pytest.raises(OperationalError):
            client.put(
                f"/api/notes/{note.id}",
                files={"file": ("revised.txt", b"x = 1", "text/plain")},
                headers=auth_headers(teacher),
            )
        monkeypatch.undo()

        assert old_path.exists()
        assert list(old_path.parent.iterdir()) == [old_path]
        db.expire_all()
        assert db.get(Note, note.id).file_path == str(old_path)

    def test_delete_removes_reviews_and_unlinks_history(
        self, client, db, teacher, student, make_note, make_review, auth_headers
    ):
        note = make_note(teacher, with_file=True)
        make_review(note, student, 4)
        assert client.get(f"/api/notes/{note.id}/download", headers=auth_headers(student)).status_code == 200
        file_path = Path(note.file_path)

        response = client.delete(f"/api/notes/{note.id}", headers=auth_headers(teacher))

        assert response.status_code == 200
        assert response.json()["message"] == "Note deleted successfully"
        db.expire_all()
        assert db.query(Note).filter(Note.id == note.id).first() is None
        assert db.query(Review).filter(Review.note_id == note.id).count() == 0
        history = db.query(DownloadHistory).filter(DownloadHistory.student_id == student.id).one()
        assert history.note_id is None
        assert history.note_title == "Linear equations"
        assert not file_path.exists()


class TestBrowsing:
    def test_list_only_public_active_notes(self, client, teacher, make_note):
        make_note(teacher, title="Visible one")
        make_note(teacher, title="Private one", is_public=False)
        make_note(teacher, title="Inactive one", is_active=False)

        response = client.get("/api/notes")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["total"] == 1
        assert [note["title"] for note in body["data"]] == ["Visible one"]

    def test_filters(self, client, teacher, other_teacher, make_note):
        make_note(teacher, subject="Mathematics", tags=("algebra",))
        make_note(teacher, subject="Physics", grade="11", tags=("mechanics", "motion"))
        make_note(other_teacher, subject="Physics", grade="12", category="exam", tags=())

        by_subject = client.get("/api/notes", params={"subject": "Physics"}).json()
        assert by_subject["total"] == 2

        by_grade = client.get("/api/notes", params={"subject": "Physics", "grade": "11"}).json()
        assert by_grade["total"] == 1

        by_tag = client.get("/api/notes", params={"tags": "Motion,unknown"}).json()
        assert by_tag["total"] == 1
        assert by_tag["data"][0]["tags"] == ["mechanics", "motion"]

        by_category = client.get("/api/notes", params={"category": "exam"}).json()
        assert by_category["total"] == 1

        by_teacher = client.get("/api/notes", params={"teacher": str(other_teacher.id)}).json()
        assert by_teacher["total"] == 1
        assert by_teacher["data"][0]["uploadedBy"]["id"] == str(other_teacher.id)

    def test_invalid_category_filter(self, client):
        response = client.get("/api/notes", params={"category": "poster"})

        assert response.status_code == 400
        assert "Invalid category" in response.json()["error"]["message"]

    def test_pagination(self, client, teacher, make_note):
        for index in range(3):
            make_note(teacher, title=f"Chapter {index}")

        body = client.get("/api/notes", params={"page": 2, "limit": 2}).json()

        assert body["count"] == 1
        assert body["total"] == 3
        assert body["totalPages"] == 2
        assert body["currentPage"] == 2

    def test_limit_is_bounded(self, client):
        assert client.get("/api/notes", params={"limit": 101}).status_code == 400
        assert client.get("/api/notes", params={"page": 0}).status_code == 400

    def test_get_counts_views(self, client, teacher, make_note):
        note = make_note(teacher)

        client.get(f"/api/notes/{note.id}")
        response = client.get(f"/api/notes/{note.id}")

        assert response.status_code == 200
        assert response.json()["data"]["viewCount"] == 2

    def test_private_note_is_not_available(self, client, teacher, make_note):
        note = make_note(teacher, is_public=False)

        response = client.get(f"/api/notes/{note.id}")

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Note not available"

    def test_malformed_id_is_not_found(self, client):
        response = client.get("/api/notes/12345")

        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_stats(self, client, teacher, make_note):
        make_note(teacher, subject="Mathematics", view_count=3, download_count=2)
        make_note(teacher, subject="Physics", category="quiz", view_count=1)
        make_note(teacher, subject="Physics", is_public=False, view_count=100)

        data = client.get("/api/notes/stats").json()["data"]

        assert data["totalNotes"] == 2
        assert data["totalViews"] == 4
        assert data["totalDownloads"] == 2
        assert data["averageRating"] == 0.0
        assert data["subjectDistribution"] == {"Mathematics": 1, "Physics": 1}
        assert data["categoryDistribution"] == {"lecture-notes": 1, "quiz": 1}

    def test_my_uploads_includes_private_notes(self, client, teacher, other_teacher, make_note, auth_headers):
        make_note(teacher, is_public=False)
        make_note(teacher)
        make_note(other_teacher)

        body = client.get("/api/notes/my-uploads", headers=auth_headers(teacher)).json()

        assert body["total"] == 2

    def test_my_uploads_is_for_teachers(self, client, student, auth_headers):
        response = client.get("/api/notes/my-uploads", headers=auth_headers(student))

        assert response.status_code == 403


class TestDownload:
    def test_student_download_is_recorded(self, client, db, teacher, student, make_note, auth_headers):
        note = make_note(teacher, with_file=True)

        response = client.get(f"/api/notes/{note.id}/download", headers=auth_headers(student))

        assert response.status_code == 200
        assert response.content == b"x + 1 = 2"
        assert response.headers["content-disposition"] == 'attachment; filename="equations.txt"'
        db.expire_all()
        assert db.get(Note, note.id).download_count == 1
        record = db.query(DownloadHistory).filter(DownloadHistory.student_id == student.id).one()
        assert record.note_id == note.id
        assert record.file_name == "equations.txt"
        assert record.note_subject == "Mathematics"
        assert record.uploaded_by == teacher.id

    def test_anonymous_download_is_counted_not_recorded(self, client, db, teacher, make_note):
        note = make_note(teacher, with_file=True)

        response = client.get(f"/api/notes/{note.id}/download")

        assert response.status_code == 200
        db.expire_all()
        assert db.get(Note, note.id).download_count == 1
        assert db.query(DownloadHistory).count() == 0

    def test_teacher_download_is_not_recorded(self, client, db, teacher, make_note, auth_headers):
        note = make_note(teacher, with_file=True)

        client.get(f"/api/notes/{note.id}/download", headers=auth_headers(teacher))

        assert db.query(DownloadHistory).count() == 0

    def test_note_without_file(self, client, teacher, make_note):
        note = make_note(teacher)

        response = client.get(f"/api/notes/{note.id}/download")

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "No file attached to this note"

    def test_missing_file_on_disk(self, client, teacher, make_note):
        note = make_note(teacher, with_file=True)
        Path(note.file_path).unlink()

        response = client.get(f"/api/notes/{note.id}/download")

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "File not found"

    def test_non_ascii_file_name(self, client, db, teacher, student, make_note, auth_headers):
        note = make_note(teacher, with_file=True, original_file_name="代数笔记.txt")

        response = client.get(f"/api/notes/{note.id}/download", headers=auth_headers(student))

        assert response.status_code == 200
        assert response.content == b"x + 1 = 2"
        assert response.headers["content-disposition"] == (
            f"attachment; filename=\"download.txt\"; filename*=UTF-8''{quote('代数笔记.txt')}"
        )
        record = db.query(DownloadHistory).filter(DownloadHistory.student_id == student.id).one()
        assert record.file_name == "代数笔记.txt"

    def test_quoted_file_name(self, client, teacher, make_note):
        note = make_note(teacher, with_file=True, original_file_name='say "hi".txt')

        response = client.get(f"/api/notes/{note.id}/download")

        assert response.status_code == 200
        assert response.headers["content-disposition"] == (
            "attachment; filename=\"say hi.txt\"; filename*=UTF-8''say%20%22hi%22.txt"
        )

    def test_uploaded_non_ascii_file_downloads(self, client, db, teacher, student, auth_headers):
        created = client.post(
            "/api/notes",
            data=NOTE_FORM,
            files={"file": ("代数笔记.txt", b"x + 1 = 2", "text/plain")},
            headers=auth_headers(teacher),
        ).json()["data"]

        response = client.get(f"/api/notes/{created['id']}/download", headers=auth_headers(student))

        assert response.status_code == 200
        assert "filename*=UTF-8''" in response.headers["content-disposition"]
        db.expire_all()
        assert db.get(Note, UUID(created["id"])).download_count == 1
        assert db.query(DownloadHistory).count() == 1

    def test_bad_token_downloads_anonymously(self, client, db, teacher, make_note):
        note = make_note(teacher, with_file=True)

        response = client.get(f"/api/notes/{note.id}/download", headers={"Authorization": "Bearer junk"})

        assert response.status_code == 200
        assert response.content == b"x + 1 = 2"
        db.expire_all()
        assert db.get(Note, note.id).download_count == 1
        assert db.query(DownloadHistory).count() == 0
