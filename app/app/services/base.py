from __future__ import annotations

from app.common.config import Settings, get_settings
from app.infra.storage.client import StorageClient


class ServiceError(Exception):
    """Base class for application service level exceptions."""


class MissingUserError(ServiceError):
    """Raised when an operation lacks the user namespace it is scoped to."""


class MultipartProtocolError(ServiceError):
    """Raised when a multipart invariant is broken.

    This signals a defect in the caller or the pipeline, never a condition
    to recover from.
    """


class BaseService:
    """Provides the storage client and settings shared by application services."""

    def __init__(self, storage: StorageClient, *, settings: Settings | None = None):
        self._storage = storage
        self._settings = settings or get_settings()

    @property
    def storage(self) -> StorageClient:
        return self._storage

    @property
    def bucket(self) -> str:
        return self._settings.S3_BUCKET

    def _ensure_user(self, user_id: str | None) -> str:
        if not user_id or not user_id.strip():
            raise MissingUserError("user_id is required for this operation")
        return user_id
