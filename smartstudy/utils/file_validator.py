"""Upload validation: extension allowlist, MIME type and size ceiling."""
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from smartstudy.core.exceptions import FileTooLargeError, InvalidFileTypeError, ValidationError


@dataclass
class UploadedFile:
    """A multipart file already read into memory."""

    filename: str
    content_type: Optional[str]
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


class FileValidator:
    """Check an uploaded file before it is handed to storage."""

    MIME_TYPES = {
        "pdf": "application/pdf",
        "doc": "application/msword",
        "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "txt": "text/plain",
        "jpg": "image/jpeg",
        "jpeg": "image/jpeg",
        "png": "image/png",
        "ppt": "application/vnd.ms-powerpoint",
        "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    }

    def __init__(self, allowed_extensions: List[str], max_size: int):
        self.allowed_extensions = allowed_extensions
        self.max_size = max_size

    @staticmethod
    def extension(filename: str) -> str:
        return Path(filename or "").suffix.lower().lstrip(".")

    def is_supported(self, filename: str) -> bool:
        """Check if a file extension is allowed."""
        return self.extension(filename) in self.allowed_extensions

    def expected_mime_type(self, filename: str) -> Optional[str]:
        return self.MIME_TYPES.get(self.extension(filename))

    def validate(self, filename: str, content_type: Optional[str], size: int) -> str:
        """
        Validate a file and return its lowercase extension.

        Raises:
            ValidationError: empty file name
            InvalidFileTypeError: extension outside the allowlist or MIME mismatch
            FileTooLargeError: size above the ceiling
        """
        if not filename:
            raise ValidationError("Uploaded file has no name", field="file")

        ext = self.extension(filename)
        if ext not in self.allowed_extensions:
            raise InvalidFileTypeError(
                f"Only {', '.join(self.allowed_extensions)} files are allowed. You uploaded: {ext or 'unknown'}",
                file_type=ext,
                allowed_types=self.allowed_extensions,
            )

        expected = self.MIME_TYPES.get(ext)
        mime = (content_type or "").lower()
        if expected and mime and mime != expected and mime != "application/octet-stream":
            # text and image files are accepted under any subtype of their family
            family_ok = (ext == "txt" and mime.startswith("text/")) or (
                ext in ("jpg", "jpeg", "png") and mime.startswith("image/")
            )
            if not family_ok:
                raise InvalidFileTypeError(
                    f"Invalid file type. Expected {expected} but got {mime}",
                    file_type=ext,
                    allowed_types=self.allowed_extensions,
                )

        if size > self.max_size:
            raise FileTooLargeError(self.max_size)

        return ext
