"""Remote object store access.

``StorageClient`` is the async protocol the services depend on;
``S3StorageClient`` implements it with boto3 for AWS S3 and compatible
stores such as MinIO.
"""

from .client import (
    CompletedPart,
    MultipartUpload,
    ObjectListing,
    StorageClient,
    StorageError,
)
from .s3_client import S3StorageClient, is_retryable

__all__ = [
    "CompletedPart",
    "MultipartUpload",
    "ObjectListing",
    "S3StorageClient",
    "StorageClient",
    "StorageError",
    "is_retryable",
]
