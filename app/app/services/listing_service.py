"""Paginated key listing under a user namespace."""

from __future__ import annotations

import asyncio
import logging

from app.app.services.base import BaseService
from app.common.config import Settings
from app.infra.storage.client import ObjectListing, StorageClient, StorageError

logger = logging.getLogger("listing")


def namespace_for(prefix: str) -> str:
    """Listing prefix for a user, always ending in a single ``/``."""
    return prefix.rstrip("/") + "/"


class ListingService(BaseService):
    """Collects every key under a namespace by following continuation tokens."""

    def __init__(
        self,
        storage: StorageClient,
        *,
        settings: Settings | None = None,
    ) -> None:
        super().__init__(storage, settings=settings)
        self._page_size = int(self._settings.S3_MAX_LIST_KEYS)
        self._retries = int(self._settings.STORAGE_LIST_RETRIES)
        self._backoff = float(self._settings.STORAGE_RETRY_BACKOFF_SECONDS)

    async def list_object_keys(self, prefix: str) -> list[str]:
        """List all keys under ``prefix`` with the namespace stripped.

        Keys come back in store order. A failure on any page discards the
        pages already collected.

        Raises:
            MissingUserError: If ``prefix`` is empty.
            StorageError: If any page fails.
        """
        namespace = namespace_for(self._ensure_user(prefix))
        keys: list[str] = []
        token: str | None = None
        pages = 0
        while True:
            page = await self._fetch_page(namespace, token)
            pages += 1
            keys.extend(
                key[len(namespace) :] for key in page.keys if key.startswith(namespace)
            )
            if not page.is_truncated:
                break
            if not page.next_token:
                raise StorageError(
                    f"Truncated listing for {namespace} returned no continuation token"
                )
            token = page.next_token

        logger.info(
            "listed prefix=%s keys=%s pages=%s",
            namespace,
            len(keys),
            pages,
            extra={"extra": {"prefix": namespace, "keys": len(keys), "pages": pages}},
        )
        return keys

    async def _fetch_page(self, namespace: str, token: str | None) -> ObjectListing:
        attempt = 0
        while True:
            try:
                return await self._storage.list_objects(
                    bucket=self.bucket,
                    prefix=namespace,
                    max_keys=self._page_size,
                    continuation_token=token,
                )
            except StorageError as exc:
                if exc.retryable and attempt < self._retries:
                    delay = self._backoff * (2**attempt)
                    attempt += 1
                    logger.warning(
                        "list_objects_retry prefix=%s attempt=%s delay=%.2f error=%s",
                        namespace,
                        attempt,
                        delay,
                        exc,
                        extra={
                            "extra": {
                                "prefix": namespace,
                                "attempt": attempt,
                                "error": str(exc),
                            }
                        },
                    )
                    await asyncio.sleep(delay)
                    continue
                logger.error(
                    "list_objects_failed prefix=%s continuation_token=%s error=%s",
                    namespace,
                    token,
                    exc,
                    extra={
                        "extra": {
                            "prefix": namespace,
                            "continuation_token": token,
                            "error": str(exc),
                        }
                    },
                )
                raise
