"""
Notecase Backend — Note Service (Lifecycle Orchestrator)
==========================================================

What:  Decodes note requests and keeps attachment blobs and note records
       consistent across create, update and delete.
How:   Composes an AttachmentStore and a NoteRepository handed in at
       construction. Holds no per-request state.
Who:   Called by the /api/notes route handlers.

Per-request states:
    Received → Decoded → (AttachmentResolved) → Persisted → Responded
    Any unrecoverable step ends in Aborted (an exception propagates).

Cross-store ordering (there is no transaction spanning both stores):
    create:  blob put            → note put
    update:  old blob delete     → new blob put → note patch
    delete:  blob delete         → note delete

    A failure between steps leaves an orphan blob rather than a note that
    points at a missing blob. Failed blob deletes are logged and ignored.

Concurrency:
    No locking and no version check. Two concurrent updates of the same
    note are last-write-wins, and the loser's new blob becomes an orphan.
"""

import json
import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from notecase.config import settings
from notecase.exceptions import DecodeError, ValidationError
from notecase.schemas.note import Attachment, Note, NoteWriteRequest, attachment_columns
from notecase.services.attachment_store import AttachmentStore
from notecase.services.multipart import (
    FilePayload,
    decode_multipart,
    extract_boundary,
    is_multipart,
    reverse_transport_encoding,
)
from notecase.services.note_repository import NoteRepository

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass
class NoteInput:
    """Decoded create/update request. None means "not supplied"."""

    note_id: Optional[str] = None
    title: Optional[str] = None
    content: Optional[str] = None
    file: Optional[FilePayload] = None


def make_blob_key(owner_id: str, file_name: str, now: Optional[datetime] = None) -> str:
    """
    Build a fresh attachment key: {owner}/{utc millis}-{uuid4 hex}-{filename}.

    The uuid4 component makes every key unique on its own; the timestamp
    and filename only make keys readable when browsing the bucket.
    """
    now = now or datetime.now(timezone.utc)
    base_name = PurePosixPath(file_name.replace("\\", "/")).name
    safe_name = _UNSAFE_KEY_CHARS.sub("_", base_name).strip("._")[:100] or "file"
    safe_owner = _UNSAFE_KEY_CHARS.sub("_", owner_id).strip("._") or "owner"
    millis = int(now.timestamp() * 1000)
    return f"{safe_owner}/{millis}-{uuid.uuid4().hex}-{safe_name}"


class NoteService:
    """
    Business logic layer for note operations.

    Responsibilities:
        - decode_request(): multipart or JSON body → NoteInput
        - create_note(): blob first, then the note record
        - update_note(): partial update with attachment replacement
        - delete_note(): blob cleanup, then the note record
        - list_notes(): pass-through to the repository

    Error Handling Strategy:
        DecodeError/ValidationError are raised before any store is touched.
        NotFoundError from the initial lookup aborts update/delete with no
        mutation. StorageUnavailableError from a blob *put* aborts before
        the repository write. Blob *delete* and URL signing failures are
        logged and never abort.
    """

    def __init__(
        self,
        attachments: AttachmentStore,
        repository: NoteRepository,
        url_ttl_seconds: Optional[int] = None,
    ):
        self.attachments = attachments
        self.repository = repository
        self.url_ttl_seconds = url_ttl_seconds or settings.signed_url_ttl

    # ── Decoding ──────────────────────────────────────────────────────────

    def decode_request(
        self,
        content_type: Optional[str],
        body: Union[bytes, str],
        base64_encoded: bool = False,
    ) -> NoteInput:
        """
        Turn a raw request body into a NoteInput.

        multipart/form-data goes through the multipart decoder; any other
        content type is read as a JSON object. An empty body is an empty input.

        Raises:
            DecodeError: malformed multipart, invalid JSON, or JSON that is
                         not an object.
            ValidationError: JSON fields of the wrong type.
        """
        if is_multipart(content_type):
            form = decode_multipart(body, extract_boundary(content_type), base64_encoded)
            return NoteInput(
                note_id=form.fields.get("noteId"),
                title=form.fields.get("title"),
                content=form.fields.get("content"),
                file=form.file,
            )

        try:
            raw = reverse_transport_encoding(body, base64_encoded).decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(message="Request body is not valid UTF-8") from e
        if not raw.strip():
            return NoteInput()

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            raise DecodeError(
                message="Request body is not valid JSON",
                context={"error": str(e)},
            ) from e
        if not isinstance(payload, dict):
            raise DecodeError(message="Request body must be a JSON object")

        try:
            request = NoteWriteRequest.model_validate(payload)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field_name = ".".join(str(part) for part in first.get("loc", ())) or None
            raise ValidationError(
                message=f"Invalid value for '{field_name}': {first.get('msg')}",
                field=field_name,
            ) from e

        return NoteInput(note_id=request.note_id, title=request.title, content=request.content)

    # ── Operations ────────────────────────────────────────────────────────

    async def create_note(self, owner_id: str, note_input: NoteInput) -> Note:
        """
        Create a note, storing its attachment first when one is supplied.

        A client-supplied noteId is ignored; a fresh one is always generated.

        Raises:
            ValidationError: title or content missing.
            StorageUnavailableError: blob put failed (no note is written).
            RepositoryUnavailableError: note put failed (the blob is orphaned).
        """
        if note_input.title is None:
            raise ValidationError(message="Title is required", field="title")
        if note_input.content is None:
            raise ValidationError(message="Content is required", field="content")

        attachment: Optional[Attachment] = None
        if note_input.file is not None:
            attachment = await self._store_attachment(owner_id, note_input.file)

        note = Note(
            owner_id=owner_id,
            note_id=str(uuid.uuid4()),
            title=note_input.title,
            content=note_input.content,
            created_at=datetime.now(timezone.utc),
            attachment=attachment,
        )
        await self.repository.put(note)
        logger.info(
            "Note %s created for owner %s (attachment=%s)",
            note.note_id,
            owner_id,
            attachment.blob_key if attachment else None,
        )
        return note

    async def update_note(self, owner_id: str, note_id: str, note_input: NoteInput) -> Note:
        """
        Partially update a note.

        Title/content: the incoming value when supplied, otherwise the
        existing one. Attachment: a new file replaces the old blob (old
        deleted best-effort, new one put, URL re-derived); without a new file
        the existing attachment fields are written back unchanged, URL
        included, even if it has expired.

        Raises:
            NotFoundError: no such note (nothing is mutated).
            StorageUnavailableError: new blob put failed (note not patched).
            RepositoryUnavailableError: patch failed.
        """
        existing = await self.repository.get(owner_id, note_id)

        title = note_input.title if note_input.title is not None else existing.title
        content = note_input.content if note_input.content is not None else existing.content

        attachment = existing.attachment
        if note_input.file is not None:
            if existing.attachment is not None:
                await self._discard_blob(existing.attachment.blob_key, note_id)
            attachment = await self._store_attachment(owner_id, note_input.file)

        fields = {"title": title, "content": content, **attachment_columns(attachment)}
        await self.repository.patch(owner_id, note_id, fields)

        logger.info(
            "Note %s updated for owner %s (attachment replaced=%s)",
            note_id,
            owner_id,
            note_input.file is not None,
        )
        return existing.model_copy(
            update={"title": title, "content": content, "attachment": attachment}
        )

    async def delete_note(self, owner_id: str, note_id: str) -> None:
        """
        Delete a note and attempt to delete its blob first.

        The blob delete may fail; the note is deleted regardless, and
        the blob is left as an orphan.

        Raises:
            NotFoundError: no such note (nothing is mutated).
            RepositoryUnavailableError: the note delete failed.
        """
        existing = await self.repository.get(owner_id, note_id)
        if existing.attachment is not None:
            await self._discard_blob(existing.attachment.blob_key, note_id)
        await self.repository.delete(owner_id, note_id)
        logger.info("Note %s deleted for owner %s", note_id, owner_id)

    async def list_notes(self, owner_id: str) -> List[Note]:
        return await self.repository.list_by_owner(owner_id)

    # ── Attachment helpers ────────────────────────────────────────────────

    async def _store_attachment(self, owner_id: str, payload: FilePayload) -> Attachment:
        blob_key = make_blob_key(owner_id, payload.file_name)
        # StorageUnavailableError propagates: nothing may reference this key yet
        await self.attachments.put(blob_key, payload.data, payload.content_type)
        return Attachment(
            blob_key=blob_key,
            file_name=payload.file_name,
            content_type=payload.content_type,
            access_url=await self._issue_url(blob_key),
        )

    async def _issue_url(self, blob_key: str) -> Optional[str]:
        try:
            return await self.attachments.signed_url(blob_key, self.url_ttl_seconds)
        except Exception as e:
            # the note is still usable; the URL can be issued again later
            logger.warning("Could not sign URL for %s: %s", blob_key, e)
            return None

    async def _discard_blob(self, blob_key: str, note_id: str) -> None:
        try:
            await self.attachments.delete(blob_key)
        except Exception as e:
            # Log but don't raise: a leaked blob is preferred over a failed request
            logger.warning(
                "Orphaned attachment %s of note %s (delete failed: %s)",
                blob_key,
                note_id,
                e,
            )

