"""
Notecase Backend — Dependency Wiring
======================================

What:  FastAPI dependencies that hand route handlers their owner identity,
       attachment store, note repository and NoteService.
How:   Stores are built once per process (lru_cache) from settings; the
       service is a thin per-request object composing them.
Who:   Used by routes via Depends(); tests replace them through
       app.dependency_overrides.
"""

import logging
from functools import lru_cache

from fastapi import Depends

from notecase.config import settings
from notecase.services.attachment_store import AttachmentStore, LocalAttachmentStore
from notecase.services.note_repository import NoteRepository, SqlNoteRepository
from notecase.services.note_service import NoteService

logger = logging.getLogger(__name__)


def get_owner_id() -> str:
    """
    Owner partition for the current request.

    Every request maps to the configured default owner until an identity
    layer supplies a per-user value here.
    """
    return settings.default_owner_id


@lru_cache
def get_attachment_store() -> AttachmentStore:
    if settings.storage_backend == "s3":
        # imported lazily so local deployments never load boto3
        from notecase.services.s3_store import S3AttachmentStore

        return S3AttachmentStore(
            bucket=settings.s3_bucket,
            region=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url or None,
            prefix=settings.s3_prefix,
        )
    return LocalAttachmentStore()


@lru_cache
def get_note_repository() -> NoteRepository:
    from notecase.database import async_session_factory

    return SqlNoteRepository(async_session_factory)


def get_note_service(
    attachments: AttachmentStore = Depends(get_attachment_store),
    repository: NoteRepository = Depends(get_note_repository),
) -> NoteService:
    return NoteService(attachments=attachments, repository=repository)
