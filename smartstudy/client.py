"""
Python client for the Smart Study Platform API.

Mirrors the web client's service modules (auth, notes, reviews, download
history, analytics). Every call returns the decoded JSON envelope; failures
reported by the API raise ``APIError``.

Usage:
    client = StudyPlatformClient("http://localhost:8000")
    client.login("ada@example.com", "secret1")
    notes = client.list_notes(subject="Math")["data"]
"""
import logging
from typing import Any, Dict, Optional, Tuple

import httpx
from pydantic.alias_generators import to_camel

logger = logging.getLogger("smartstudy.client")

# (filename, content, content type)
FileTuple = Tuple[str, bytes, str]


class APIError(Exception):
    """The API answered with ``success: false`` or an error status."""

    def __init__(self, status_code: int, message: str, code: Optional[str] = None, payload: Any = None):
        self.status_code = status_code
        self.message = message
        self.code = code
        self.payload = payload
        super().__init__(f"{status_code}: {message}")


def _camel(values: Dict[str, Any]) -> Dict[str, Any]:
    return {to_camel(key): value for key, value in values.items() if value is not None}


def _form(values: Dict[str, Any]) -> Dict[str, str]:
    form = {}
    for key, value in _camel(values).items():
        if isinstance(value, (list, tuple)):
            value = ",".join(value)
        elif isinstance(value, bool):
            value = "true" if value else "false"
        form[key] = str(value)
    return form


class StudyPlatformClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        token: Optional[str] = None,
        client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ):
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)
        self._owns_client = client is None
        self.token = token
        self.user: Optional[dict] = None

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    # ------------------------------------------------------------------
    # transport

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        response = self._client.request(method, f"/api{path}", headers=self._headers(), **kwargs)
        logger.debug("%s %s -> %d", method, path, response.status_code)
        if response.status_code >= 400:
            self._raise(response)
        return response

    def _request(self, method: str, path: str, **kwargs) -> dict:
        payload = self._send(method, path, **kwargs).json()
        if not payload.get("success", False):
            error = payload.get("error") or {}
            raise APIError(200, error.get("message", "Request failed"), error.get("code"), payload)
        return payload

    @staticmethod
    def _raise(response: httpx.Response) -> None:
        try:
            payload = response.json()
        except ValueError:
            raise APIError(response.status_code, response.text or response.reason_phrase)
        error = payload.get("error") or {}
        raise APIError(response.status_code, error.get("message", "Request failed"), error.get("code"), payload)

    def _remember(self, payload: dict) -> dict:
        self.token = payload.get("token")
        self.user = payload.get("user")
        return payload

    # ------------------------------------------------------------------
    # auth

    def register(self, name: str, email: str, password: str, role: str = "student", **profile) -> dict:
        body = _camel({"name": name, "email": email, "password": password, "role": role, **profile})
        return self._remember(self._request("POST", "/auth/register", json=body))

    def login(self, email: str, password: str) -> dict:
        return self._remember(self._request("POST", "/auth/login", json={"email": email, "password": password}))

    def logout(self) -> dict:
        payload = self._request("POST", "/auth/logout")
        self.token = None
        self.user = None
        return payload

    def me(self) -> dict:
        return self._request("GET", "/auth/me")

    def update_profile(self, **fields) -> dict:
        return self._request("PUT", "/auth/profile", json=_camel(fields))

    def change_password(self, current_password: str, new_password: str) -> dict:
        return self._request(
            "PUT", "/auth/password",
            json={"currentPassword": current_password, "newPassword": new_password},
        )

    def forgot_password(self, email: str) -> dict:
        return self._request("POST", "/auth/forgot-password", json={"email": email})

    def reset_password(self, token: str, new_password: str) -> dict:
        return self._request("POST", f"/auth/reset-password/{token}", json={"newPassword": new_password})

    # ------------------------------------------------------------------
    # notes

    def list_notes(self, page: int = 1, limit: int = 10, **filters) -> dict:
        params = _form(filters)
        params.update({"page": page, "limit": limit})
        return self._request("GET", "/notes", params=params)

    def get_note(self, note_id: str) -> dict:
        return self._request("GET", f"/notes/{note_id}")

    def notes_stats(self) -> dict:
        return self._request("GET", "/notes/stats")

    def my_uploads(self, page: int = 1, limit: int = 10) -> dict:
        return self._request("GET", "/notes/my-uploads", params={"page": page, "limit": limit})

    def upload_note(self, file: Optional[FileTuple] = None, **fields) -> dict:
        files = {"file": file} if file else None
        return self._request("POST", "/notes", data=_form(fields), files=files)

    def update_note(self, note_id: str, file: Optional[FileTuple] = None, **fields) -> dict:
        files = {"file": file} if file else None
        return self._request("PUT", f"/notes/{note_id}", data=_form(fields), files=files)

    def delete_note(self, note_id: str) -> dict:
        return self._request("DELETE", f"/notes/{note_id}")

    def download_note(self, note_id: str) -> bytes:
        return self._send("GET", f"/notes/{note_id}/download", follow_redirects=True).content

    # ------------------------------------------------------------------
    # reviews

    def note_reviews(self, note_id: str, page: int = 1, limit: int = 10,
                     sort_by: str = "createdAt", sort_order: str = "desc") -> dict:
        params = {"page": page, "limit": limit, "sortBy": sort_by, "sortOrder": sort_order}
        return self._request("GET", f"/reviews/note/{note_id}", params=params)

    def review_stats(self, note_id: str) -> dict:
        return self._request("GET", f"/reviews/stats/{note_id}")

    def create_review(self, note_id: str, rating: int, comment: Optional[str] = None,
                      categories: Optional[dict] = None) -> dict:
        body = _camel({"note_id": note_id, "rating": rating, "comment": comment, "categories": categories})
        return self._request("POST", "/reviews", json=body)

    def update_review(self, review_id: str, **fields) -> dict:
        return self._request("PUT", f"/reviews/{review_id}", json=_camel(fields))

    def delete_review(self, review_id: str) -> dict:
        return self._request("DELETE", f"/reviews/{review_id}")

    def vote_review(self, review_id: str, helpful: bool) -> dict:
        return self._request("POST", f"/reviews/{review_id}/vote", json={"helpful": helpful})

    def report_review(self, review_id: str) -> dict:
        return self._request("POST", f"/reviews/{review_id}/report")

    def my_reviews(self, page: int = 1, limit: int = 10) -> dict:
        return self._request("GET", "/reviews/my-reviews", params={"page": page, "limit": limit})

    def student_reviews(self, student_id: str, page: int = 1, limit: int = 10) -> dict:
        return self._request("GET", f"/reviews/student/{student_id}", params={"page": page, "limit": limit})

    # ------------------------------------------------------------------
    # download history

    def download_history(self, page: int = 1, limit: int = 10) -> dict:
        return self._request("GET", "/download-history", params={"page": page, "limit": limit})

    def download_stats(self) -> dict:
        return self._request("GET", "/download-history/stats")

    def record_download(self, **fields) -> dict:
        return self._request("POST", "/download-history", json=_camel(fields))

    def delete_download(self, record_id: str) -> dict:
        return self._request("DELETE", f"/download-history/{record_id}")

    # ------------------------------------------------------------------
    # analytics

    def student_progress(self) -> dict:
        return self._request("GET", "/analytics/student-progress")

    def teacher_analytics(self) -> dict:
        return self._request("GET", "/analytics/teacher-analytics")

    def platform_analytics(self) -> dict:
        return self._request("GET", "/analytics/platform")
