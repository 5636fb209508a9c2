"""
Domain exceptions for the Smart Study Platform.

Services raise these instead of HTTPException; the handlers registered in
``smartstudy.core.error_handlers`` turn them into the JSON error envelope.

Usage:
    from smartstudy.core.exceptions import ResourceNotFoundError

    if not note:
        raise ResourceNotFoundError("Note", note_id)
"""
from typing import Any, Dict, List, Optional


class StudyPlatformError(Exception):
    """Base exception for all platform errors"""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(StudyPlatformError):
    """Caller could not be authenticated"""

    status_code = 401

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="AUTH_FAILED")


class InvalidTokenError(AuthenticationError):
    """JWT token is malformed or its signature does not match"""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)
        self.code = "INVALID_TOKEN"


class TokenExpiredError(AuthenticationError):
    """JWT token has expired"""

    def __init__(self):
        super().__init__("Token expired")
        self.code = "TOKEN_EXPIRED"


class AuthorizationError(StudyPlatformError):
    """Caller has the wrong role or does not own the resource"""

    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, code="NOT_AUTHORIZED")


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(StudyPlatformError):
    """Unknown resource id"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: Any = None, message: Optional[str] = None):
        super().__init__(
            message or f"{resource_type} not found",
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            details={"resource_id": str(resource_id)} if resource_id is not None else None,
        )


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(StudyPlatformError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else None
        super().__init__(message, code="VALIDATION_ERROR", details=details)

    @classmethod
    def from_messages(cls, messages: List[str]) -> "ValidationError":
        return cls(", ".join(messages))

    @classmethod
    def from_errors(cls, errors) -> "ValidationError":
        """One error built from pydantic error dicts (``loc`` / ``msg``)."""
        return cls.from_messages([format_error(error) for error in errors])


class ConflictError(StudyPlatformError):
    """Duplicate value for a unique field or pair"""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message, code="CONFLICT")


class InvalidFileTypeError(ValidationError):
    """File extension or MIME type not allowed"""

    def __init__(self, message: str, file_type: str, allowed_types: List[str]):
        super().__init__(message)
        self.code = "INVALID_FILE_TYPE"
        self.details = {"file_type": file_type, "allowed_types": allowed_types}


class FileTooLargeError(ValidationError):
    """File exceeds the configured size ceiling"""

    def __init__(self, max_bytes: int):
        super().__init__(f"File too large. Maximum size is {round(max_bytes / (1024 * 1024))}MB")
        self.code = "FILE_TOO_LARGE"
        self.details = {"max_bytes": max_bytes}


# ============================================
# Storage Errors
# ============================================

class StorageError(StudyPlatformError):
    """Storage provider operation failed"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message, code="STORAGE_ERROR")


def error_response(error: StudyPlatformError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "success": False,
        "error": error.to_dict()
    }


def format_error(error: Dict[str, Any]) -> str:
    """``"<field>: <message>"`` for one pydantic error."""
    loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "form")]
    message = str(error.get("msg", "Invalid value"))
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return f"{loc[-1]}: {message}" if loc else message
