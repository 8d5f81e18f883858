from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

ENV_FILE = Path(".env")

DEFAULT_PART_SIZE_BYTES = 10 * 1024 * 1024
# S3 caps a single ListObjectsV2 page at 1000 keys
MAX_LIST_PAGE_SIZE = 1000


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _as_optional(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value.strip()


@dataclass
class Settings:
    S3_BUCKET: str = "cloudstore"
    S3_ENDPOINT_URL: str | None = None
    S3_REGION: str | None = None
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None
    S3_USE_SSL: bool = True
    S3_ADDRESSING_STYLE: str = "auto"
    S3_MAX_LIST_KEYS: int = MAX_LIST_PAGE_SIZE
    STORAGE_PART_SIZE_BYTES: int = DEFAULT_PART_SIZE_BYTES
    STORAGE_LIST_RETRIES: int = 0
    STORAGE_RETRY_BACKOFF_SECONDS: float = 0.2
    UPLOAD_CONCURRENCY: int = 4
    UPLOAD_READ_CHUNK_BYTES: int = 64 * 1024
    ENABLE_METRICS: bool = True
    CORS_ENABLED: bool = False
    CORS_ORIGINS: list[str] = field(default_factory=list)
    LOG_LEVEL: str = "INFO"
    AUTH_ENABLED: bool = False
    AUTH_ALLOW_ANONYMOUS: bool = False
    AUTH_TOKEN_SECRET: str | None = None
    AUTH_TOKEN_ALGORITHM: str = "HS256"
    AUTH_TOKEN_AUDIENCE: str | None = None
    AUTH_TOKEN_ISSUER: str | None = None
    AUTH_TOKEN_LEEWAY: int = 0
    AUTH_USERNAME_CLAIM: str = "cognito:username"

    def __post_init__(self) -> None:
        if not self.S3_BUCKET:
            raise ValueError("S3_BUCKET must not be empty.")
        if self.STORAGE_PART_SIZE_BYTES <= 0:
            raise ValueError("STORAGE_PART_SIZE_BYTES must be positive.")
        if not 1 <= self.S3_MAX_LIST_KEYS <= MAX_LIST_PAGE_SIZE:
            raise ValueError(
                f"S3_MAX_LIST_KEYS must be between 1 and {MAX_LIST_PAGE_SIZE}."
            )
        if self.UPLOAD_CONCURRENCY < 1:
            raise ValueError("UPLOAD_CONCURRENCY must be at least 1.")
        if self.UPLOAD_READ_CHUNK_BYTES <= 0:
            raise ValueError("UPLOAD_READ_CHUNK_BYTES must be positive.")
        if self.STORAGE_LIST_RETRIES < 0:
            raise ValueError("STORAGE_LIST_RETRIES must not be negative.")

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        return cls(
            S3_BUCKET=os.environ.get("S3_BUCKET", cls.S3_BUCKET),
            S3_ENDPOINT_URL=_as_optional(os.environ.get("S3_ENDPOINT_URL")),
            S3_REGION=_as_optional(os.environ.get("S3_REGION")),
            S3_ACCESS_KEY_ID=_as_optional(os.environ.get("S3_ACCESS_KEY_ID")),
            S3_SECRET_ACCESS_KEY=_as_optional(os.environ.get("S3_SECRET_ACCESS_KEY")),
            S3_USE_SSL=_as_bool(os.environ.get("S3_USE_SSL"), cls.S3_USE_SSL),
            S3_ADDRESSING_STYLE=os.environ.get(
                "S3_ADDRESSING_STYLE", cls.S3_ADDRESSING_STYLE
            ),
            S3_MAX_LIST_KEYS=int(
                os.environ.get("S3_MAX_LIST_KEYS", cls.S3_MAX_LIST_KEYS)
            ),
            STORAGE_PART_SIZE_BYTES=int(
                os.environ.get("STORAGE_PART_SIZE_BYTES", cls.STORAGE_PART_SIZE_BYTES)
            ),
            STORAGE_LIST_RETRIES=int(
                os.environ.get("STORAGE_LIST_RETRIES", cls.STORAGE_LIST_RETRIES)
            ),
            STORAGE_RETRY_BACKOFF_SECONDS=float(
                os.environ.get(
                    "STORAGE_RETRY_BACKOFF_SECONDS", cls.STORAGE_RETRY_BACKOFF_SECONDS
                )
            ),
            UPLOAD_CONCURRENCY=int(
                os.environ.get("UPLOAD_CONCURRENCY", cls.UPLOAD_CONCURRENCY)
            ),
            UPLOAD_READ_CHUNK_BYTES=int(
                os.environ.get("UPLOAD_READ_CHUNK_BYTES", cls.UPLOAD_READ_CHUNK_BYTES)
            ),
            ENABLE_METRICS=_as_bool(
                os.environ.get("ENABLE_METRICS"), cls.ENABLE_METRICS
            ),
            CORS_ENABLED=_as_bool(os.environ.get("CORS_ENABLED"), cls.CORS_ENABLED),
            CORS_ORIGINS=_as_list(os.environ.get("CORS_ORIGINS")),
            LOG_LEVEL=os.environ.get("LOG_LEVEL", cls.LOG_LEVEL).upper(),
            AUTH_ENABLED=_as_bool(os.environ.get("AUTH_ENABLED"), cls.AUTH_ENABLED),
            AUTH_ALLOW_ANONYMOUS=_as_bool(
                os.environ.get("AUTH_ALLOW_ANONYMOUS"), cls.AUTH_ALLOW_ANONYMOUS
            ),
            AUTH_TOKEN_SECRET=os.environ.get("AUTH_TOKEN_SECRET"),
            AUTH_TOKEN_ALGORITHM=os.environ.get(
                "AUTH_TOKEN_ALGORITHM", cls.AUTH_TOKEN_ALGORITHM
            ),
            AUTH_TOKEN_AUDIENCE=os.environ.get("AUTH_TOKEN_AUDIENCE"),
            AUTH_TOKEN_ISSUER=os.environ.get("AUTH_TOKEN_ISSUER"),
            AUTH_TOKEN_LEEWAY=int(
                os.environ.get("AUTH_TOKEN_LEEWAY", cls.AUTH_TOKEN_LEEWAY)
            ),
            AUTH_USERNAME_CLAIM=os.environ.get(
                "AUTH_USERNAME_CLAIM", cls.AUTH_USERNAME_CLAIM
            ),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
