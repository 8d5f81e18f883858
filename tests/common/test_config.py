from __future__ import annotations

import os

import pytest

from app.common import config as config_module
from app.common.config import DEFAULT_PART_SIZE_BYTES, Settings


@pytest.fixture()
def no_env_file(monkeypatch, tmp_path):
    monkeypatch.setattr(config_module, "ENV_FILE", tmp_path / "missing.env")


def test_defaults(no_env_file, monkeypatch):
    for key in ("S3_BUCKET", "S3_REGION", "STORAGE_PART_SIZE_BYTES"):
        monkeypatch.delenv(key, raising=False)

    settings = Settings.from_environment()

    assert settings.S3_BUCKET == "cloudstore"
    assert settings.S3_REGION is None
    assert settings.STORAGE_PART_SIZE_BYTES == DEFAULT_PART_SIZE_BYTES
    assert settings.S3_MAX_LIST_KEYS == 1000
    assert settings.STORAGE_LIST_RETRIES == 0
    assert settings.AUTH_USERNAME_CLAIM == "cognito:username"


def test_reads_environment(no_env_file, monkeypatch):
    monkeypatch.setenv("S3_BUCKET", "uploads")
    monkeypatch.setenv("S3_ENDPOINT_URL", "http://minio:9000")
    monkeypatch.setenv("S3_USE_SSL", "false")
    monkeypatch.setenv("STORAGE_PART_SIZE_BYTES", "5242880")
    monkeypatch.setenv("UPLOAD_CONCURRENCY", "8")
    monkeypatch.setenv("CORS_ORIGINS", "http://a.test, http://b.test")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_environment()

    assert settings.S3_BUCKET == "uploads"
    assert settings.S3_ENDPOINT_URL == "http://minio:9000"
    assert settings.S3_USE_SSL is False
    assert settings.STORAGE_PART_SIZE_BYTES == 5 * 1024 * 1024
    assert settings.UPLOAD_CONCURRENCY == 8
    assert settings.CORS_ORIGINS == ["http://a.test", "http://b.test"]
    assert settings.LOG_LEVEL == "DEBUG"


def test_blank_optional_values_become_none(no_env_file, monkeypatch):
    monkeypatch.setenv("S3_ENDPOINT_URL", "  ")

    assert Settings.from_environment().S3_ENDPOINT_URL is None


def test_env_file_does_not_override_environment(monkeypatch, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "# local overrides\nS3_BUCKET=from-file\nUPLOAD_CONCURRENCY='2'\n",
        encoding="utf-8",
    )
    monkeypatch.setattr(config_module, "ENV_FILE", env_file)
    monkeypatch.setenv("S3_BUCKET", "from-env")
    monkeypatch.delenv("UPLOAD_CONCURRENCY", raising=False)

    try:
        settings = Settings.from_environment()
    finally:
        # values loaded from the file land in os.environ
        os.environ.pop("UPLOAD_CONCURRENCY", None)

    assert settings.S3_BUCKET == "from-env"
    assert settings.UPLOAD_CONCURRENCY == 2


@pytest.mark.parametrize(
    "overrides",
    [
        {"S3_BUCKET": ""},
        {"STORAGE_PART_SIZE_BYTES": 0},
        {"S3_MAX_LIST_KEYS": 0},
        {"S3_MAX_LIST_KEYS": 1001},
        {"UPLOAD_CONCURRENCY": 0},
        {"UPLOAD_READ_CHUNK_BYTES": 0},
        {"STORAGE_LIST_RETRIES": -1},
    ],
)
def test_rejects_invalid_values(overrides):
    with pytest.raises(ValueError):
        Settings(**overrides)
