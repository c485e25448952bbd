"""
Notecase Backend — Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy (all function-scoped):
    ├── journal:           shared, ordered log of every store call
    ├── attachment_store:  RecordingAttachmentStore writing to the journal
    ├── note_repository:   RecordingNoteRepository writing to the journal
    ├── note_service:      NoteService over the two recording fakes
    ├── note_factory:      builds Note objects with defaults
    ├── make_multipart:    builder for raw multipart/form-data bodies
    ├── app:               fresh FastAPI app with the fakes injected
    └── api_client:        HTTPX AsyncClient over that app

The journal is what the ordering tests assert on: one list, both stores, so
"blob put happened before note put" is a plain list comparison.
"""

import os
import tempfile

# Override settings for testing BEFORE any notecase import
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./notecase_test.db"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="notecase_test_")
os.environ["SIGNING_SECRET"] = "test-signing-secret"
os.environ["API_KEY"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import datetime, timezone  # noqa: E402
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from notecase.exceptions import (  # noqa: E402
    NotFoundError,
    RepositoryUnavailableError,
    StorageUnavailableError,
)
from notecase.schemas.note import Attachment, Note  # noqa: E402
from notecase.services.attachment_store import AttachmentStore  # noqa: E402
from notecase.services.note_repository import NoteRepository, check_patch_fields  # noqa: E402
from notecase.services.note_service import NoteService  # noqa: E402

MULTIPART_BOUNDARY = "----NotecaseTestBoundary7MA4YWxkTrZu0gW"


# ══════════════════════════════════════════════════════════════════════════
# Recording Fakes
# ══════════════════════════════════════════════════════════════════════════


class RecordingAttachmentStore(AttachmentStore):
    """
    In-memory AttachmentStore that logs every call to a shared journal.

    Entries: ("store.put", key), ("store.delete", key), ("store.signed_url", key).
    A call is journaled before its failure flag is checked, so failed
    attempts are visible too.
    """

    def __init__(self, journal: List[Tuple[str, str]]):
        self.journal = journal
        self.blobs: Dict[str, Tuple[bytes, str]] = {}
        self.fail_put = False
        self.fail_delete = False
        self.fail_sign = False
        self.healthy = True

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        self.journal.append(("store.put", key))
        if self.fail_put:
            raise StorageUnavailableError(context={"key": key})
        self.blobs[key] = (data, content_type)

    async def delete(self, key: str) -> None:
        self.journal.append(("store.delete", key))
        if self.fail_delete:
            raise StorageUnavailableError(context={"key": key})
        self.blobs.pop(key, None)

    async def signed_url(self, key: str, ttl_seconds: int) -> str:
        self.journal.append(("store.signed_url", key))
        if self.fail_sign:
            raise StorageUnavailableError(context={"key": key})
        return f"https://files.test/{key}?ttl={ttl_seconds}"

    async def ping(self) -> bool:
        return self.healthy


class RecordingNoteRepository(NoteRepository):
    """
    In-memory NoteRepository that logs every call to a shared journal.

    Entries: ("repo.put"|"repo.get"|"repo.patch"|"repo.delete", note_id) and
    ("repo.list", owner_id). Stored notes are copies, so a test can never
    mutate repository state through a returned object.
    """

    def __init__(self, journal: List[Tuple[str, str]]):
        self.journal = journal
        self.notes: Dict[Tuple[str, str], Note] = {}
        self.fail = False
        self.healthy = True

    def _check_available(self) -> None:
        if self.fail:
            raise RepositoryUnavailableError()

    def seed(self, note: Note) -> Note:
        """Insert a note without journaling (test setup)."""
        self.notes[(note.owner_id, note.note_id)] = note.model_copy(deep=True)
        return note

    async def put(self, note: Note) -> None:
        self.journal.append(("repo.put", note.note_id))
        self._check_available()
        self.notes[(note.owner_id, note.note_id)] = note.model_copy(deep=True)

    async def get(self, owner_id: str, note_id: str) -> Note:
        self.journal.append(("repo.get", note_id))
        self._check_available()
        try:
            return self.notes[(owner_id, note_id)].model_copy(deep=True)
        except KeyError:
            raise NotFoundError(resource="note", resource_id=note_id) from None

    async def list_by_owner(self, owner_id: str) -> List[Note]:
        self.journal.append(("repo.list", owner_id))
        self._check_available()
        return [
            note.model_copy(deep=True)
            for (owner, _), note in self.notes.items()
            if owner == owner_id
        ]

    async def patch(self, owner_id: str, note_id: str, fields: Mapping[str, Any]) -> None:
        self.journal.append(("repo.patch", note_id))
        self._check_available()
        check_patch_fields(fields)
        current = self.notes.get((owner_id, note_id))
        if current is None:
            raise NotFoundError(resource="note", resource_id=note_id)

        columns = current.attachment_columns()
        columns.update({k: v for k, v in fields.items() if k in columns})
        update: Dict[str, Any] = {k: fields[k] for k in ("title", "content") if k in fields}
        update["attachment"] = Attachment.from_columns(**columns)
        self.notes[(owner_id, note_id)] = current.model_copy(update=update)

    async def delete(self, owner_id: str, note_id: str) -> None:
        self.journal.append(("repo.delete", note_id))
        self._check_available()
        self.notes.pop((owner_id, note_id), None)

    async def ping(self) -> bool:
        return self.healthy


def make_note(
    note_id: str = "note-1",
    owner_id: str = "demo-user",
    title: str = "Title",
    content: str = "Content",
    attachment: Optional[Attachment] = None,
) -> Note:
    return Note(
        owner_id=owner_id,
        note_id=note_id,
        title=title,
        content=content,
        created_at=datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc),
        attachment=attachment,
    )


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures (created fresh for each test)
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def journal() -> List[Tuple[str, str]]:
    return []


@pytest.fixture
def attachment_store(journal):
    return RecordingAttachmentStore(journal)


@pytest.fixture
def note_repository(journal):
    return RecordingNoteRepository(journal)


@pytest.fixture
def note_service(attachment_store, note_repository):
    return NoteService(attachments=attachment_store, repository=note_repository, url_ttl_seconds=900)


@pytest.fixture
def note_factory():
    """Builds Note instances with sensible defaults (see make_note)."""
    return make_note


@pytest.fixture
def make_multipart():
    """
    Returns a builder for raw multipart bodies.

    Each part is (headers, content): a list of header lines and the raw
    bytes. The builder adds delimiters, the blank line and the closing
    delimiter exactly the way a browser does.

    Usage:
        body = make_multipart([
            (['Content-Disposition: form-data; name="title"'], b"Hello"),
        ])
    """

    def build(
        parts: Sequence[Tuple[Sequence[str], bytes]],
        boundary: str = MULTIPART_BOUNDARY,
        preamble: bytes = b"",
    ) -> bytes:
        delimiter = b"--" + boundary.encode("ascii")
        body = preamble
        for headers, content in parts:
            body += delimiter + b"\r\n"
            for header in headers:
                body += header.encode("utf-8") + b"\r\n"
            body += b"\r\n" + content + b"\r\n"
        return body + delimiter + b"--\r\n"

    return build


@pytest.fixture
def app(attachment_store, note_repository):
    """A fresh FastAPI app whose stores are the recording fakes."""
    from notecase.dependencies import get_attachment_store, get_note_repository
    from notecase.main import create_app

    application = create_app()
    application.dependency_overrides[get_attachment_store] = lambda: attachment_store
    application.dependency_overrides[get_note_repository] = lambda: note_repository
    return application


@pytest_asyncio.fixture
async def api_client(app):
    """
    HTTPX AsyncClient talking to the `app` fixture over ASGI.

    Usage:
        async def test_list(api_client):
            response = await api_client.get("/api/notes")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
