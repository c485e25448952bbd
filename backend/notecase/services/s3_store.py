"""
Notecase Backend — S3 Attachment Store
========================================

What:  AttachmentStore backed by an S3-compatible bucket (AWS, MinIO, localstack).
How:   boto3 client calls run in Starlette's threadpool so a slow bucket never
       blocks the event loop. The client is created once and shared; boto3
       clients are safe to use from several threads.
Who:   Selected by STORAGE_BACKEND=s3 in notecase.dependencies.

Object key layout:
    {s3_prefix}/{blob_key}   e.g. note-attachments/demo-user/1705320000123-3f2a...-report.pdf

Signed URLs are presigned GET URLs; S3 itself enforces the expiry.
"""

import logging
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from notecase.exceptions import StorageUnavailableError
from notecase.services.attachment_store import AttachmentStore

logger = logging.getLogger(__name__)


class S3AttachmentStore(AttachmentStore):
    """Attachment store on an S3 bucket."""

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        prefix: str = "",
        client: Optional[Any] = None,
    ):
        """
        Args:
            bucket: Target bucket name.
            region: AWS region of the bucket.
            endpoint_url: Non-AWS endpoint (MinIO/localstack); switches to path-style addressing.
            prefix: Key prefix for every object.
            client: Pre-built boto3 S3 client (used in tests with botocore's Stubber).
        """
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        if client is None:
            s3_cfg = Config(
                signature_version="s3v4",
                s3={"addressing_style": "path"} if endpoint_url else {},
            )
            client = boto3.client(
                "s3",
                region_name=region,
                endpoint_url=endpoint_url or None,
                config=s3_cfg,
            )
        self.client = client
        logger.info("S3AttachmentStore initialized for bucket=%s prefix=%s", bucket, self.prefix)

    def object_key(self, key: str) -> str:
        return f"{self.prefix}/{key}" if self.prefix else key

    def _unavailable(self, operation: str, key: str, error: Exception) -> StorageUnavailableError:
        logger.error("S3 %s failed for %s: %s", operation, key, error)
        return StorageUnavailableError(
            context={"operation": operation, "key": key, "error_type": type(error).__name__},
        )

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        try:
            await run_in_threadpool(
                self.client.put_object,
                Bucket=self.bucket,
                Key=self.object_key(key),
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            raise self._unavailable("put_object", key, e) from e
        logger.info("Attachment stored: s3://%s/%s (%d bytes)", self.bucket, self.object_key(key), len(data))

    async def delete(self, key: str) -> None:
        # S3 answers 204 for missing keys, so this is idempotent as-is
        try:
            await run_in_threadpool(
                self.client.delete_object,
                Bucket=self.bucket,
                Key=self.object_key(key),
            )
        except (BotoCoreError, ClientError) as e:
            raise self._unavailable("delete_object", key, e) from e
        logger.info("Attachment deleted: s3://%s/%s", self.bucket, self.object_key(key))

    async def signed_url(self, key: str, ttl_seconds: int) -> str:
        try:
            return await run_in_threadpool(
                self.client.generate_presigned_url,
                "get_object",
                Params={"Bucket": self.bucket, "Key": self.object_key(key)},
                ExpiresIn=ttl_seconds,
            )
        except (BotoCoreError, ClientError) as e:
            raise self._unavailable("generate_presigned_url", key, e) from e

    async def ping(self) -> bool:
        try:
            await run_in_threadpool(self.client.head_bucket, Bucket=self.bucket)
        except (BotoCoreError, ClientError) as e:
            logger.warning("S3 ping failed for bucket %s: %s", self.bucket, e)
            return False
        return True
