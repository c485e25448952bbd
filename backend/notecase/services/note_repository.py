"""
Notecase Backend — Note Repository
====================================

What:  Keyed metadata store for notes: put, get, list-by-owner, patch, delete.
How:   NoteRepository is the abstract capability the service depends on.
       SqlNoteRepository implements it with async SQLAlchemy, opening one
       short session per operation so concurrent requests never share one.
Who:   Called by NoteService. Knows nothing about attachment blobs beyond
       the four flattened attachment columns.

Error translation:
    SQLAlchemyError → RepositoryUnavailableError (500). No retries here;
    retrying belongs to whatever sits in front of the API.
    Missing (owner_id, note_id) → NotFoundError on get/patch. delete is
    idempotent and never raises NotFoundError.
"""

import logging
from abc import ABC, abstractmethod
from datetime import timezone
from typing import Any, List, Mapping

from sqlalchemy import delete, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notecase.exceptions import NotFoundError, RepositoryUnavailableError
from notecase.models.note import NoteRecord
from notecase.schemas.note import ATTACHMENT_COLUMNS, Attachment, Note

logger = logging.getLogger(__name__)

# Attributes patch() may touch; owner_id, note_id and created_at are immutable
PATCHABLE_FIELDS = frozenset(("title", "content") + ATTACHMENT_COLUMNS)


class NoteRepository(ABC):
    """
    Abstract interface over the note metadata store.

    Contract:
        - (owner_id, note_id) is the only key
        - list_by_owner has no ordering guarantee and no pagination
        - patch updates only the named fields, leaving the others untouched
        - delete of a missing key is not an error
    """

    @abstractmethod
    async def put(self, note: Note) -> None:
        """Insert or fully replace the note stored under its (owner_id, note_id)."""
        ...

    @abstractmethod
    async def get(self, owner_id: str, note_id: str) -> Note:
        """Return the note. Raises NotFoundError if absent."""
        ...

    @abstractmethod
    async def list_by_owner(self, owner_id: str) -> List[Note]:
        ...

    @abstractmethod
    async def patch(self, owner_id: str, note_id: str, fields: Mapping[str, Any]) -> None:
        """
        Update a subset of attributes in place.

        Args:
            fields: mapping of attribute name → new value; names must be in
                    PATCHABLE_FIELDS.

        Raises:
            NotFoundError: the note does not exist.
            ValueError: a field name is not patchable.
        """
        ...

    @abstractmethod
    async def delete(self, owner_id: str, note_id: str) -> None:
        ...

    async def ping(self) -> bool:
        """Lightweight reachability probe for the health check."""
        return True


def check_patch_fields(fields: Mapping[str, Any]) -> None:
    unknown = set(fields) - PATCHABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot patch note attribute(s): {', '.join(sorted(unknown))}")


def record_to_note(record: NoteRecord) -> Note:
    created_at = record.created_at
    if created_at.tzinfo is None:
        # SQLite hands back naive datetimes; everything is stored in UTC
        created_at = created_at.replace(tzinfo=timezone.utc)
    return Note(
        owner_id=record.owner_id,
        note_id=record.note_id,
        title=record.title,
        content=record.content,
        created_at=created_at,
        attachment=Attachment.from_columns(
            record.blob_key, record.file_name, record.content_type, record.file_url
        ),
    )


def note_to_record(note: Note) -> NoteRecord:
    return NoteRecord(
        owner_id=note.owner_id,
        note_id=note.note_id,
        title=note.title,
        content=note.content,
        created_at=note.created_at,
        **note.attachment_columns(),
    )


class SqlNoteRepository(NoteRepository):
    """
    NoteRepository backed by the `notes` table.

    Each method runs in its own session and commits before returning, so a
    repository call is a single independent write. There is no optimistic
    concurrency token: two concurrent patches of the same note are
    last-write-wins.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    def _unavailable(self, operation: str, error: Exception, **context: Any) -> RepositoryUnavailableError:
        logger.error("Repository %s failed: %s | %s", operation, error, context, exc_info=True)
        return RepositoryUnavailableError(
            context={"operation": operation, "error_type": type(error).__name__, **context},
        )

    async def put(self, note: Note) -> None:
        try:
            async with self._session_factory() as session:
                await session.merge(note_to_record(note))
                await session.commit()
        except SQLAlchemyError as e:
            raise self._unavailable("put", e, note_id=note.note_id) from e
        logger.debug("Stored note %s/%s", note.owner_id, note.note_id)

    async def get(self, owner_id: str, note_id: str) -> Note:
        try:
            async with self._session_factory() as session:
                record = await session.get(NoteRecord, (owner_id, note_id))
        except SQLAlchemyError as e:
            raise self._unavailable("get", e, note_id=note_id) from e

        if record is None:
            raise NotFoundError(resource="note", resource_id=note_id)
        return record_to_note(record)

    async def list_by_owner(self, owner_id: str) -> List[Note]:
        query = (
            select(NoteRecord)
            .where(NoteRecord.owner_id == owner_id)
            .order_by(NoteRecord.created_at.desc())
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                records = list(result.scalars().all())
        except SQLAlchemyError as e:
            raise self._unavailable("list_by_owner", e, owner_id=owner_id) from e
        return [record_to_note(record) for record in records]

    async def patch(self, owner_id: str, note_id: str, fields: Mapping[str, Any]) -> None:
        check_patch_fields(fields)
        if not fields:
            await self.get(owner_id, note_id)
            return

        statement = (
            update(NoteRecord)
            .where(NoteRecord.owner_id == owner_id, NoteRecord.note_id == note_id)
            .values(**dict(fields))
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(statement)
                matched = result.rowcount
                await session.commit()
        except SQLAlchemyError as e:
            raise self._unavailable("patch", e, note_id=note_id) from e

        if not matched:
            raise NotFoundError(resource="note", resource_id=note_id)
        logger.debug("Patched note %s/%s fields=%s", owner_id, note_id, sorted(fields))

    async def delete(self, owner_id: str, note_id: str) -> None:
        statement = delete(NoteRecord).where(
            NoteRecord.owner_id == owner_id, NoteRecord.note_id == note_id
        )
        try:
            async with self._session_factory() as session:
                await session.execute(statement)
                await session.commit()
        except SQLAlchemyError as e:
            raise self._unavailable("delete", e, note_id=note_id) from e

    async def ping(self) -> bool:
        try:
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.warning("Repository ping failed: %s", e)
            return False
        return True

