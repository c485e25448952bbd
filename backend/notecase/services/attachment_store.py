"""
Notecase Backend — Attachment Store
=====================================

What:  Blob storage for note attachments: put, delete, signed read URLs.
How:   AttachmentStore is the abstract capability the service depends on.
       LocalAttachmentStore keeps blobs on disk under STORAGE_ROOT and signs
       its own URLs with HMAC-SHA256; they are served by GET /api/files/...
       S3AttachmentStore (s3_store.py) is the object-store adapter.
Who:   Called by NoteService. Knows nothing about notes.

Contract shared by all adapters:
    put(key, data, content_type)  overwrite allowed; StorageUnavailableError on failure
    delete(key)                   idempotent; StorageUnavailableError on failure
    signed_url(key, ttl_seconds)  derives a URL without touching stored data

Directory Structure (local adapter):
    storage/
    └── demo-user/
        ├── 1705320000123-3f2a...-report.pdf
        └── 1705320456789-9c1d...-photo.png
"""

import hashlib
import hmac
import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from urllib.parse import quote, urlencode

import aiofiles
import aiofiles.os

from notecase.config import settings
from notecase.exceptions import (
    AccessDeniedError,
    NotFoundError,
    StorageUnavailableError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class AttachmentStore(ABC):
    """
    Abstract interface over a key-addressed blob backend.

    Implementations translate their backend's errors into
    StorageUnavailableError; callers never see OSError or botocore errors.
    """

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> None:
        """Store `data` durably under `key`, replacing any existing blob."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the blob under `key`. Deleting a missing key is not an error."""
        ...

    @abstractmethod
    async def signed_url(self, key: str, ttl_seconds: int) -> str:
        """
        Derive a URL granting read access to `key` for `ttl_seconds`.

        Expiry is enforced by whoever verifies the URL, not tracked here.
        """
        ...

    async def ping(self) -> bool:
        """Lightweight reachability probe for the health check."""
        return True


class LocalAttachmentStore(AttachmentStore):
    """
    Attachment store on the local filesystem.

    Signed URL format:
        {public_base_url}/api/files/{key}?expires={unix_ts}&signature={hex}

        signature = HMAC-SHA256(signing_secret, "{key}:{expires}")
    """

    def __init__(
        self,
        storage_root: Optional[str] = None,
        signing_secret: Optional[str] = None,
        public_base_url: Optional[str] = None,
    ):
        """
        Args:
            storage_root: Override settings.storage_root (used in tests).
            signing_secret: Override settings.signing_secret.
            public_base_url: Override settings.public_base_url.
        """
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        self._secret = (signing_secret or settings.signing_secret).encode("utf-8")
        base_url = settings.public_base_url if public_base_url is None else public_base_url
        self.public_base_url = base_url.rstrip("/")
        logger.info("LocalAttachmentStore initialized with storage_root=%s", self.storage_root)

    def resolve(self, key: str) -> Path:
        """
        Map a blob key to a path inside storage_root.

        Raises:
            ValidationError: the key would escape storage_root (e.g. ../../etc/passwd).
        """
        path = (self.storage_root / key).resolve()
        if path == self.storage_root or not path.is_relative_to(self.storage_root):
            raise ValidationError(message="Invalid attachment key", field="key")
        return path

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        path = self.resolve(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as e:
            logger.error("Failed to store attachment at %s: %s", path, e)
            raise StorageUnavailableError(
                message="Failed to save the attachment. Please try again.",
                context={"key": key, "os_error": str(e)},
            ) from e
        logger.info("Attachment stored: %s (%d bytes, %s)", key, len(data), content_type)

    async def delete(self, key: str) -> None:
        path = self.resolve(key)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            logger.debug("Attachment already gone: %s", key)
            return
        except OSError as e:
            logger.error("Failed to delete attachment at %s: %s", path, e)
            raise StorageUnavailableError(
                message="Failed to delete the attachment.",
                context={"key": key, "os_error": str(e)},
            ) from e
        logger.info("Attachment deleted: %s", key)

    def _sign(self, key: str, expires: int) -> str:
        message = f"{key}:{expires}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    async def signed_url(self, key: str, ttl_seconds: int) -> str:
        expires = int(time.time()) + ttl_seconds
        query = urlencode({"expires": expires, "signature": self._sign(key, expires)})
        return f"{self.public_base_url}/api/files/{quote(key)}?{query}"

    def verify_signature(
        self,
        key: str,
        expires: int,
        signature: str,
        now: Optional[float] = None,
    ) -> None:
        """
        Check a URL issued by signed_url().

        Raises:
            AccessDeniedError: signature mismatch or expiry in the past.
        """
        current = time.time() if now is None else now
        if expires < current:
            raise AccessDeniedError(
                message="This attachment link has expired",
                context={"key": key, "expired_at": expires},
            )
        if not hmac.compare_digest(self._sign(key, expires), signature):
            raise AccessDeniedError(context={"key": key})

    def locate(self, key: str) -> Path:
        """Path of an existing blob. Raises NotFoundError if it is not on disk."""
        path = self.resolve(key)
        if not path.is_file():
            raise NotFoundError(resource="attachment", resource_id=key)
        return path

    async def ping(self) -> bool:
        return self.storage_root.is_dir()
