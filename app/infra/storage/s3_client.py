"""S3-compatible storage client implementation.

This module provides an S3-compatible storage client that works with
AWS S3, MinIO, and other S3-compatible object storage services.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Sequence

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from app.infra.storage.client import (
    CompletedPart,
    MultipartUpload,
    ObjectListing,
    StorageError,
)

if TYPE_CHECKING:
    from app.common.config import Settings

logger = logging.getLogger("storage")

RETRYABLE_ERROR_CODES = frozenset(
    {
        "Throttling",
        "ThrottlingException",
        "SlowDown",
        "RequestTimeout",
        "RequestTimeoutException",
        "InternalError",
        "ServiceUnavailable",
        "500",
        "503",
    }
)


def is_retryable(exc: BaseException) -> bool:
    """Classify a boto3 failure as throttling/transient."""
    if isinstance(exc, ClientError):
        code = exc.response.get("Error", {}).get("Code")
        return code in RETRYABLE_ERROR_CODES
    # connection resets, read timeouts and the like
    return isinstance(exc, BotoCoreError)


class S3StorageClient:
    """S3-compatible object storage client.

    Supports AWS S3, MinIO, and other S3-compatible services.
    boto3 calls are blocking, so each one runs in the threadpool and the
    calling task suspends until it returns.
    """

    def __init__(self, *, settings: "Settings") -> None:
        """Initialize the S3 client with configuration from settings.

        Args:
            settings: Application settings containing S3 configuration.
        """
        self._settings = settings
        self._client = self._build_client(settings)

    @staticmethod
    def _build_client(settings: "Settings") -> Any:
        """Create a boto3 S3 client from settings."""
        addressing_style = (settings.S3_ADDRESSING_STYLE or "path").strip().lower()
        config = Config(s3={"addressing_style": addressing_style})

        return boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT_URL,
            region_name=settings.S3_REGION,
            aws_access_key_id=settings.S3_ACCESS_KEY_ID,
            aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY,
            use_ssl=bool(settings.S3_USE_SSL),
            config=config,
        )

    async def _call(self, operation: str, failure: str, **params: Any) -> Any:
        method = getattr(self._client, operation)
        try:
            return await run_in_threadpool(method, **params)
        except Exception as exc:
            raise StorageError(
                f"{failure}: {exc}", retryable=is_retryable(exc)
            ) from exc

    async def list_objects(
        self,
        *,
        bucket: str,
        prefix: str,
        max_keys: int,
        continuation_token: str | None = None,
    ) -> ObjectListing:
        """List one page of object keys under a prefix."""
        params: dict[str, Any] = {
            "Bucket": bucket,
            "Prefix": prefix,
            "MaxKeys": int(max_keys),
        }
        if continuation_token:
            params["ContinuationToken"] = continuation_token

        response = await self._call(
            "list_objects_v2", "Failed to list objects", **params
        )

        keys = tuple(str(item["Key"]) for item in response.get("Contents") or [])
        return ObjectListing(
            keys=keys,
            next_token=response.get("NextContinuationToken"),
            is_truncated=bool(response.get("IsTruncated")),
        )

    async def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session."""
        params: dict[str, Any] = {"Bucket": bucket, "Key": object_key}
        if content_type:
            params["ContentType"] = content_type

        response = await self._call(
            "create_multipart_upload", "Failed to create multipart upload", **params
        )

        upload_id = response.get("UploadId")
        if not upload_id:
            raise StorageError("S3 response missing UploadId")

        return MultipartUpload(
            upload_id=str(upload_id),
            bucket=bucket,
            object_key=object_key,
        )

    async def upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> CompletedPart:
        """Upload one part and return its completion token."""
        logger.debug(
            "upload_part key=%s upload_id=%s part_number=%s size=%s",
            object_key,
            upload_id,
            part_number,
            len(body),
        )
        response = await self._call(
            "upload_part",
            f"Failed to upload part {part_number}",
            Bucket=bucket,
            Key=object_key,
            UploadId=upload_id,
            PartNumber=int(part_number),
            ContentLength=len(body),
            Body=body,
        )

        etag = response.get("ETag")
        if not etag:
            raise StorageError(f"S3 response missing ETag for part {part_number}")

        return CompletedPart(part_number=int(part_number), etag=str(etag))

    async def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> None:
        """Complete a multipart upload by combining all parts."""
        multipart_payload = {
            "Parts": [
                {"ETag": part.etag, "PartNumber": int(part.part_number)}
                for part in parts
            ]
        }

        await self._call(
            "complete_multipart_upload",
            "Failed to complete multipart upload",
            Bucket=bucket,
            Key=object_key,
            UploadId=upload_id,
            MultipartUpload=multipart_payload,
        )

    async def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        """Abort a multipart upload and clean up uploaded parts."""
        await self._call(
            "abort_multipart_upload",
            "Failed to abort multipart upload",
            Bucket=bucket,
            Key=object_key,
            UploadId=upload_id,
        )
