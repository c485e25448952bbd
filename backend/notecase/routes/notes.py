"""
Notecase Backend — Notes Route Handlers
=========================================

What:  CRUD over /api/notes plus GET /api/files/... for locally stored attachments.
How:   Reads the raw body (size-capped), hands it to NoteService for decoding
       and orchestration, serializes the result with camelCase keys.
Who:   Called by the browser client.

Routes stay thin: every error is raised as a NotecaseError and formatted by
the global handlers in main.py.

Caching:
    - /api/notes: no-store (notes change on every write)
    - /api/files/...: private, bounded by the signature's expiry
"""

import logging
import mimetypes
import time
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import FileResponse

from notecase.config import settings
from notecase.dependencies import get_attachment_store, get_note_service, get_owner_id
from notecase.exceptions import NotFoundError, PayloadTooLargeError, ValidationError
from notecase.schemas.note import ErrorResponse, NoteMutationResponse, NoteResponse
from notecase.services.attachment_store import AttachmentStore, LocalAttachmentStore
from notecase.services.note_service import NoteService

logger = logging.getLogger(__name__)

# ── Router Configuration ──────────────────────────────────────────────────
router = APIRouter(prefix="/api", tags=["Notes"])

NO_STORE = {"Cache-Control": "no-store"}


async def read_body(request: Request) -> bytes:
    """
    Read the whole request body, refusing anything over settings.max_body_size.

    The declared Content-Length is checked first so an oversized upload is
    rejected before it is buffered.
    """
    limit = settings.max_body_size
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > limit:
        raise PayloadTooLargeError(max_size=limit, actual_size=int(declared))

    body = await request.body()
    if len(body) > limit:
        raise PayloadTooLargeError(max_size=limit, actual_size=len(body))
    return body


def is_base64_transport(request: Request) -> bool:
    return request.headers.get("content-transfer-encoding", "").strip().lower() == "base64"


@router.get(
    "/notes",
    response_model=List[NoteResponse],
    response_model_exclude_none=True,
    responses={500: {"description": "Server error", "model": ErrorResponse}},
    summary="List the owner's notes",
)
async def list_notes(
    response: Response,
    owner_id: str = Depends(get_owner_id),
    service: NoteService = Depends(get_note_service),
) -> List[NoteResponse]:
    notes = await service.list_notes(owner_id)
    response.headers.update(NO_STORE)
    return [NoteResponse.from_note(note) for note in notes]


@router.post(
    "/notes",
    status_code=201,
    response_model=NoteResponse,
    response_model_exclude_none=True,
    responses={
        400: {"description": "Malformed body or missing title/content", "model": ErrorResponse},
        413: {"description": "Body too large", "model": ErrorResponse},
        503: {"description": "Attachment storage unavailable", "model": ErrorResponse},
    },
    summary="Create a note, optionally with one attached file",
    description=(
        "Accepts a JSON object {title, content} or multipart/form-data with "
        "'title', 'content' and an optional 'file' part."
    ),
)
async def create_note(
    request: Request,
    owner_id: str = Depends(get_owner_id),
    service: NoteService = Depends(get_note_service),
) -> NoteResponse:
    body = await read_body(request)
    note_input = service.decode_request(
        request.headers.get("content-type"), body, is_base64_transport(request)
    )
    logger.info(
        "Create note request: owner=%s, %d bytes, file=%s",
        owner_id,
        len(body),
        note_input.file.file_name if note_input.file else None,
    )
    note = await service.create_note(owner_id, note_input)
    return NoteResponse.from_note(note)


@router.put(
    "/notes",
    response_model=NoteMutationResponse,
    responses={
        400: {"description": "Missing noteId or malformed body", "model": ErrorResponse},
        404: {"description": "Note not found", "model": ErrorResponse},
        503: {"description": "Attachment storage unavailable", "model": ErrorResponse},
    },
    summary="Partially update a note",
    description=(
        "noteId comes from the query string, or else from the body. Omitted "
        "fields keep their current value; a new file replaces the attachment."
    ),
)
async def update_note(
    request: Request,
    note_id: Optional[str] = Query(default=None, alias="noteId"),
    owner_id: str = Depends(get_owner_id),
    service: NoteService = Depends(get_note_service),
) -> NoteMutationResponse:
    body = await read_body(request)
    note_input = service.decode_request(
        request.headers.get("content-type"), body, is_base64_transport(request)
    )
    target = note_id or note_input.note_id
    if not target:
        raise ValidationError(message="noteId is required", field="noteId")

    await service.update_note(owner_id, target, note_input)
    return NoteMutationResponse(message="Note updated", note_id=target)


@router.delete(
    "/notes",
    response_model=NoteMutationResponse,
    responses={
        400: {"description": "Missing noteId", "model": ErrorResponse},
        404: {"description": "Note not found", "model": ErrorResponse},
    },
    summary="Delete a note and its attachment",
)
async def delete_note(
    note_id: Optional[str] = Query(default=None, alias="noteId"),
    owner_id: str = Depends(get_owner_id),
    service: NoteService = Depends(get_note_service),
) -> NoteMutationResponse:
    if not note_id:
        raise ValidationError(message="noteId is required", field="noteId")

    await service.delete_note(owner_id, note_id)
    return NoteMutationResponse(message="Note deleted", note_id=note_id)


@router.get(
    "/files/{blob_key:path}",
    summary="Download an attachment through a signed link",
    responses={
        200: {"description": "Attachment bytes"},
        403: {"description": "Link invalid or expired", "model": ErrorResponse},
        404: {"description": "Attachment not found", "model": ErrorResponse},
    },
)
async def serve_file(
    blob_key: str,
    expires: int = Query(...),
    signature: str = Query(...),
    store: AttachmentStore = Depends(get_attachment_store),
) -> FileResponse:
    """
    Serve a blob of the local attachment store.

    Only URLs issued by LocalAttachmentStore.signed_url() are honoured. With
    the S3 backend clients download straight from the bucket, so this route
    answers 404.
    """
    if not isinstance(store, LocalAttachmentStore):
        raise NotFoundError(resource="attachment", resource_id=blob_key)

    store.verify_signature(blob_key, expires, signature)
    path = store.locate(blob_key)

    media_type, _ = mimetypes.guess_type(path.name)
    max_age = max(expires - int(time.time()), 0)
    return FileResponse(
        path=str(path),
        media_type=media_type or "application/octet-stream",
        headers={"Cache-Control": f"private, max-age={max_age}"},
    )
