"""Storage client protocol and data types.

This module defines the abstract interface for the remote object store:
paginated listing and the three-phase multipart upload protocol
(initiate, upload parts, complete or abort).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence


class StorageError(RuntimeError):
    """Raised when object storage operations fail.

    ``retryable`` marks throttling and transient transport faults that a
    caller may choose to retry. The storage layer itself never retries.
    """

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


@dataclass(frozen=True, slots=True)
class CompletedPart:
    """Represents a completed part in a multipart upload."""

    part_number: int
    etag: str


@dataclass(frozen=True, slots=True)
class MultipartUpload:
    """Result of initiating a multipart upload."""

    upload_id: str
    bucket: str
    object_key: str


@dataclass(frozen=True, slots=True)
class ObjectListing:
    """One page of a key listing."""

    keys: tuple[str, ...]
    next_token: str | None
    is_truncated: bool


class StorageClient(Protocol):
    """Protocol defining the interface for object storage backends.

    All operations are coroutines; implementations must not block the
    event loop while a remote call is in flight.
    """

    async def list_objects(
        self,
        *,
        bucket: str,
        prefix: str,
        max_keys: int,
        continuation_token: str | None = None,
    ) -> ObjectListing:
        """List one page of object keys under a prefix.

        Args:
            bucket: Bucket name.
            prefix: Only keys beginning with this value are returned.
            max_keys: Page size limit.
            continuation_token: Cursor from a previous truncated page.

        Returns:
            ObjectListing with the page's keys and continuation state.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    async def init_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        content_type: str | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            content_type: MIME type of the object.

        Returns:
            MultipartUpload containing the upload_id for subsequent operations.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    async def upload_part(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> CompletedPart:
        """Upload one part of a multipart upload.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            upload_id: Multipart upload ID from init_multipart_upload.
            part_number: Part number (1-based, max 10000).
            body: Part payload.

        Returns:
            CompletedPart carrying the ETag issued for this part.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    async def complete_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
    ) -> None:
        """Complete a multipart upload by combining all parts.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            upload_id: Multipart upload ID.
            parts: Completed parts in ascending part number order.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    async def abort_multipart_upload(
        self,
        *,
        bucket: str,
        object_key: str,
        upload_id: str,
    ) -> None:
        """Abort a multipart upload and clean up uploaded parts.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            upload_id: Multipart upload ID to abort.

        Raises:
            StorageError: If the operation fails.
        """
        ...
