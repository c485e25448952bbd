"""
Notecase Backend — Custom Exception Hierarchy
===============================================

What:  Application-specific exceptions for the different failure scenarios.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by the decoder, the stores and the service; caught by handlers.

Exception Hierarchy:
    NotecaseError (base)
    ├── DecodeError                 → 400 Bad Request (malformed body)
    ├── ValidationError             → 400 Bad Request (client can fix)
    ├── AuthenticationError         → 401 Unauthorized
    ├── AccessDeniedError           → 403 Forbidden
    ├── NotFoundError               → 404 Not Found
    ├── PayloadTooLargeError        → 413 Payload Too Large
    ├── StorageUnavailableError     → 503 Service Unavailable
    └── RepositoryUnavailableError  → 500 Internal Server Error

No exception here is retried inside the service. A failed blob write aborts
the request; a failed blob delete during cleanup is logged by the caller and
never surfaces as one of these.
"""

from typing import Any, Dict, Optional


class NotecaseError(Exception):
    """
    Base exception for all Notecase application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned for 5xx errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class DecodeError(NotecaseError):
    """
    Raised when a request body cannot be decoded.

    When:    Missing multipart boundary, no delimiter in the body, every part
             lacking its header/content separator, invalid base64 transport
             encoding, or a JSON body that is not an object.
    HTTP:    400 Bad Request

    Raised before either store is touched.
    """

    def __init__(
        self,
        message: str = "The request body could not be decoded",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ValidationError(NotecaseError):
    """
    Raised when client input is well-formed but unacceptable.

    When:    Missing title/content on create, missing noteId on update/delete,
             wrong JSON field types.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(NotecaseError):
    """
    Raised when the X-API-Key header is missing or does not match.

    HTTP:    401 Unauthorized
    """

    def __init__(
        self,
        message: str = "A valid API key is required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AccessDeniedError(NotecaseError):
    """
    Raised when a signed attachment URL is forged, tampered with or expired.

    HTTP:    403 Forbidden
    """

    def __init__(
        self,
        message: str = "This link is invalid or has expired",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(NotecaseError):
    """
    Raised when a requested resource does not exist.

    When:    Update or delete of an unknown noteId, or a blob that is gone.
    HTTP:    404 Not Found

    Never retried, and raised before any store mutation.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class PayloadTooLargeError(NotecaseError):
    """
    Raised when a request body exceeds settings.max_body_size.

    HTTP:    413 Payload Too Large
    """

    def __init__(
        self,
        max_size: int,
        actual_size: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        max_mb = max_size / (1024 * 1024)
        message = f"Request body exceeds the maximum of {max_mb:.1f}MB."
        ctx = context or {}
        ctx["max_size"] = max_size
        if actual_size is not None:
            ctx["actual_size"] = actual_size
        super().__init__(message=message, context=ctx)


class StorageUnavailableError(NotecaseError):
    """
    Raised when the attachment store fails.

    What:    A blob put/delete/signing call failed in the backend
             (disk full, permission denied, S3 unreachable, ...).
    HTTP:    503 Service Unavailable

    Recovery:
        - On create: the note is never written.
        - On update: the note is not patched if the NEW blob write failed.
        - Cleanup deletes that fail are logged and ignored by the caller.
    """

    def __init__(
        self,
        message: str = "Attachment storage is temporarily unavailable",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RepositoryUnavailableError(NotecaseError):
    """
    Raised when the note repository fails unexpectedly.

    When:    Connection lost mid-query, constraint violation, deadlock, etc.
    HTTP:    500 Internal Server Error

    Security Note:
        The message returned to the client is always generic.
        Details are logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
