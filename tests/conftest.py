from __future__ import annotations

import os

import pytest

os.environ.setdefault("S3_BUCKET", "test-bucket")
os.environ.setdefault("S3_REGION", "us-east-1")

from app.api.v1.deps import get_storage_client  # noqa: E402
from app.common.config import Settings, get_settings  # noqa: E402


@pytest.fixture(autouse=True)
def reset_cached_dependencies():
    get_settings.cache_clear()  # type: ignore[attr-defined]
    get_storage_client.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]
    get_storage_client.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture()
def settings() -> Settings:
    """Small parts so multi-part behaviour shows up with a few bytes of input."""
    return Settings(
        S3_BUCKET="test-bucket",
        S3_MAX_LIST_KEYS=2,
        STORAGE_PART_SIZE_BYTES=4,
        UPLOAD_CONCURRENCY=1,
        STORAGE_RETRY_BACKOFF_SECONDS=0.0,
    )
