"""
Notecase Backend — Pydantic Domain & API Schemas
==================================================

What:  The Note/Attachment domain objects passed between the service and the
       stores, plus the request/response contracts of the HTTP API.
How:   Domain models use snake_case attributes. API models serialize with
       camelCase aliases (noteId, createdAt, fileUrl, ...) so the browser
       client gets the shapes it already uses.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Columns a note's attachment is flattened into when persisted
ATTACHMENT_COLUMNS = ("blob_key", "file_name", "content_type", "file_url")


# ══════════════════════════════════════════════════════════════════════════
# Domain Models: what the service and the stores exchange
# ══════════════════════════════════════════════════════════════════════════


class Attachment(BaseModel):
    """
    The one file attached to a note.

    blob_key is the durable locator in the attachment store. access_url is a
    time-limited URL derived from it at write time; it goes stale and is
    never treated as the source of truth.
    """

    blob_key: str
    file_name: str
    content_type: str = "application/octet-stream"
    access_url: Optional[str] = None

    @classmethod
    def from_columns(
        cls,
        blob_key: Optional[str],
        file_name: Optional[str],
        content_type: Optional[str],
        file_url: Optional[str],
    ) -> Optional["Attachment"]:
        """Rebuild an attachment from its flattened columns; None when there is no blob."""
        if not blob_key:
            return None
        return cls(
            blob_key=blob_key,
            file_name=file_name or blob_key.rsplit("/", 1)[-1],
            content_type=content_type or "application/octet-stream",
            access_url=file_url,
        )


class Note(BaseModel):
    """
    One user-visible note.

    (owner_id, note_id) is the only lookup key. note_id and created_at are
    assigned on create and never change afterwards.
    """

    owner_id: str
    note_id: str
    title: str
    content: str
    created_at: datetime
    attachment: Optional[Attachment] = None

    def attachment_columns(self) -> Dict[str, Optional[str]]:
        """Flatten the attachment for storage; all None when there is none."""
        return attachment_columns(self.attachment)


def attachment_columns(attachment: Optional[Attachment]) -> Dict[str, Optional[str]]:
    if attachment is None:
        return dict.fromkeys(ATTACHMENT_COLUMNS)
    return {
        "blob_key": attachment.blob_key,
        "file_name": attachment.file_name,
        "content_type": attachment.content_type,
        "file_url": attachment.access_url,
    }


# ══════════════════════════════════════════════════════════════════════════
# Request Models: what the client sends
# ══════════════════════════════════════════════════════════════════════════


class NoteWriteRequest(BaseModel):
    """
    JSON body of POST/PUT /api/notes.

    Every field is optional here; NoteService decides what is required for
    each operation. Unknown keys are ignored.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    note_id: Optional[str] = Field(default=None, alias="noteId")
    title: Optional[str] = None
    content: Optional[str] = None


# ══════════════════════════════════════════════════════════════════════════
# Response Models: what the API returns
# ══════════════════════════════════════════════════════════════════════════


class NoteResponse(BaseModel):
    """
    A note as the browser client sees it, attachment fields flattened.

    Routes serialize with exclude_none, so a note without a file carries no
    file* keys at all.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    owner_id: str = Field(description="Owner partition of the note")
    note_id: str = Field(description="Unique note identifier")
    title: str
    content: str
    created_at: datetime = Field(description="When the note was created (UTC)")
    file_key: Optional[str] = Field(default=None, description="Storage key of the attachment")
    file_name: Optional[str] = Field(default=None, description="Original attachment filename")
    file_type: Optional[str] = Field(default=None, description="Declared attachment content type")
    file_url: Optional[str] = Field(default=None, description="Time-limited download URL")

    @classmethod
    def from_note(cls, note: Note) -> "NoteResponse":
        fields: Dict[str, Any] = {
            "owner_id": note.owner_id,
            "note_id": note.note_id,
            "title": note.title,
            "content": note.content,
            "created_at": note.created_at,
        }
        if note.attachment is not None:
            fields.update(
                file_key=note.attachment.blob_key,
                file_name=note.attachment.file_name,
                file_type=note.attachment.content_type,
                file_url=note.attachment.access_url,
            )
        return cls(**fields)


class NoteMutationResponse(BaseModel):
    """Confirmation returned by PUT and DELETE /api/notes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str
    note_id: str


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "not_found",
            "message": "note with ID '0b6f...' was not found",
            "request_id": "a1b2c3d4"
        }
    """

    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Health check response showing service and dependency status."""

    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Repository connectivity: connected, disconnected")
    storage: str = Field(description="Attachment store status: available, unavailable")
    uptime_seconds: float = Field(description="Seconds since service started")
