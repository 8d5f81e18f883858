"""Streaming multipart upload orchestration.

An upload runs three strictly ordered phases against the object store:
initiate a multipart session, upload the parts produced by the chunker,
then complete the session. Whenever anything fails after initiation,
including cancellation of the calling task, the session is aborted before
the error propagates, so no multipart session outlives the call.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import AsyncIterable

from app.app.services.base import BaseService, MultipartProtocolError
from app.app.services.chunker import Part, iter_parts
from app.common.config import Settings
from app.infra.observability.metrics import (
    MULTIPART_PART_BYTES,
    MULTIPART_PARTS,
    MULTIPART_UPLOADS,
)
from app.infra.storage.client import CompletedPart, StorageClient, StorageError

logger = logging.getLogger("upload")

# Maximum part number allowed by S3
MAX_PART_NUMBER = 10000


async def _wait_through_cancellation(future: asyncio.Future) -> bool:
    """Wait until ``future`` is done, even if the caller is cancelled meanwhile.

    Store calls run in worker threads that cannot be interrupted, so the
    remote side keeps going after the awaiting task is cancelled. Returns
    True if a cancellation arrived while waiting; the caller must re-raise it.
    """
    cancelled = False
    while not future.done():
        try:
            await asyncio.wait({future})
        except asyncio.CancelledError:
            cancelled = True
    return cancelled


@dataclass
class UploadSession:
    """State of one in-flight multipart upload, owned by a single upload call."""

    key: str
    upload_id: str
    parts: list[CompletedPart] = field(default_factory=list)

    def record(self, part: CompletedPart) -> None:
        self.parts.append(part)

    def ordered_parts(self) -> list[CompletedPart]:
        """Completion tokens sorted by part number.

        Raises:
            MultipartProtocolError: If part numbers are not exactly 1..N.
        """
        ordered = sorted(self.parts, key=lambda p: p.part_number)
        numbers = [p.part_number for p in ordered]
        if not numbers or numbers != list(range(1, len(numbers) + 1)):
            raise MultipartProtocolError(
                f"Parts for {self.key} are not contiguous from 1: {numbers}"
            )
        return ordered

    def log_context(self, **extra: object) -> dict[str, object]:
        return {"key": self.key, "upload_id": self.upload_id, **extra}


class UploadService(BaseService):
    """Uploads a fragment stream as one object using the multipart protocol."""

    def __init__(
        self,
        storage: StorageClient,
        *,
        settings: Settings | None = None,
    ) -> None:
        super().__init__(storage, settings=settings)
        self._part_size = int(self._settings.STORAGE_PART_SIZE_BYTES)
        self._concurrency = int(self._settings.UPLOAD_CONCURRENCY)

    async def upload_object(
        self,
        prefix: str,
        filename: str,
        fragments: AsyncIterable[bytes],
        *,
        content_type: str | None = None,
    ) -> str:
        """Upload ``fragments`` as ``prefix/filename``.

        Args:
            prefix: User namespace the object is stored under.
            filename: Object name inside the namespace.
            fragments: Byte fragments of arbitrary size, read once.
            content_type: Optional MIME type stored with the object.

        Returns:
            The object key relative to ``prefix``.

        Raises:
            MissingUserError: If ``prefix`` is empty.
            MultipartProtocolError: If ``filename`` is empty or the part
                sequence is broken.
            StorageError: If any object store call fails. The multipart
                session has been aborted by the time this propagates.
        """
        prefix = self._ensure_user(prefix)
        if not filename:
            raise MultipartProtocolError("filename is required to build an object key")
        key = f"{prefix}/{filename}"

        init = asyncio.ensure_future(
            self._storage.init_multipart_upload(
                bucket=self.bucket,
                object_key=key,
                content_type=content_type,
            )
        )
        cancelled = await _wait_through_cancellation(init)
        try:
            upload = init.result()
        except StorageError as exc:
            MULTIPART_UPLOADS.labels("failed").inc()
            logger.error(
                "init_multipart_upload_failed key=%s error=%s",
                key,
                exc,
                extra={"extra": {"key": key, "error": str(exc)}},
            )
            if cancelled:
                raise asyncio.CancelledError() from exc
            raise

        session = UploadSession(key=key, upload_id=upload.upload_id)
        logger.info(
            "multipart_upload_started key=%s upload_id=%s",
            key,
            session.upload_id,
            extra={"extra": session.log_context()},
        )

        try:
            if cancelled:
                # the caller went away while the session was being created
                raise asyncio.CancelledError()
            await self._upload_parts(session, fragments)
            parts = session.ordered_parts()
            logger.info(
                "completing multipart upload key=%s upload_id=%s parts=%s",
                key,
                session.upload_id,
                len(parts),
                extra={"extra": session.log_context(parts=len(parts))},
            )
            await self._storage.complete_multipart_upload(
                bucket=self.bucket,
                object_key=key,
                upload_id=session.upload_id,
                parts=parts,
            )
        except (Exception, asyncio.CancelledError) as exc:
            logger.error(
                "multipart_upload_failed key=%s upload_id=%s uploaded_parts=%s error=%r",
                key,
                session.upload_id,
                len(session.parts),
                exc,
                extra={
                    "extra": session.log_context(
                        uploaded_parts=len(session.parts), error=repr(exc)
                    )
                },
            )
            MULTIPART_UPLOADS.labels("aborted").inc()
            await self._abort_shielded(session)
            raise

        MULTIPART_UPLOADS.labels("completed").inc()
        return key[len(prefix) + 1 :]

    async def _upload_parts(
        self, session: UploadSession, fragments: AsyncIterable[bytes]
    ) -> None:
        """Drain the chunker, keeping at most ``concurrency`` parts in flight.

        On failure no further parts are started, and every part already in
        flight is allowed to finish before the error propagates, so a later
        abort cannot race a part that is still being stored.
        """
        in_flight: set[asyncio.Task[CompletedPart]] = set()
        try:
            async for part in iter_parts(fragments, self._part_size):
                if part.index > MAX_PART_NUMBER:
                    raise MultipartProtocolError(
                        f"{session.key} needs more than {MAX_PART_NUMBER} parts"
                    )
                if len(in_flight) >= self._concurrency:
                    await self._collect(session, in_flight)
                in_flight.add(asyncio.ensure_future(self._upload_part(session, part)))
            while in_flight:
                await self._collect(session, in_flight)
        finally:
            if in_flight:
                settled = asyncio.gather(*in_flight, return_exceptions=True)
                if await _wait_through_cancellation(settled):
                    raise asyncio.CancelledError()

    async def _collect(
        self,
        session: UploadSession,
        in_flight: set[asyncio.Task[CompletedPart]],
    ) -> None:
        """Wait for at least one in-flight part and record what finished."""
        done, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
        in_flight.difference_update(done)
        failure: BaseException | None = None
        for task in done:
            exc = task.exception()
            if exc is not None:
                failure = failure or exc
                continue
            session.record(task.result())
        if failure is not None:
            raise failure

    async def _upload_part(self, session: UploadSession, part: Part) -> CompletedPart:
        try:
            completed = await self._storage.upload_part(
                bucket=self.bucket,
                object_key=session.key,
                upload_id=session.upload_id,
                part_number=part.index,
                body=part.payload,
            )
        except StorageError as exc:
            logger.error(
                "upload_part_failed key=%s upload_id=%s part_number=%s error=%s",
                session.key,
                session.upload_id,
                part.index,
                exc,
                extra={
                    "extra": session.log_context(
                        part_number=part.index, error=str(exc)
                    )
                },
            )
            raise

        if completed.part_number != part.index:
            raise MultipartProtocolError(
                f"Store acknowledged part {completed.part_number} "
                f"for part {part.index} of {session.key}"
            )
        MULTIPART_PARTS.inc()
        MULTIPART_PART_BYTES.observe(part.size)
        logger.debug(
            "part_uploaded key=%s upload_id=%s part_number=%s size=%s",
            session.key,
            session.upload_id,
            part.index,
            part.size,
        )
        return completed

    async def _abort_shielded(self, session: UploadSession) -> None:
        """Run the abort to completion even if the caller is being cancelled."""
        task = asyncio.ensure_future(self._abort(session))
        if await _wait_through_cancellation(task):
            raise asyncio.CancelledError()

    async def _abort(self, session: UploadSession) -> None:
        try:
            await self._storage.abort_multipart_upload(
                bucket=self.bucket,
                object_key=session.key,
                upload_id=session.upload_id,
            )
        except Exception as exc:
            # the session is orphaned and must be cleaned up out of band
            logger.error(
                "abort_multipart_upload_failed key=%s upload_id=%s error=%s",
                session.key,
                session.upload_id,
                exc,
                extra={"extra": session.log_context(error=str(exc), orphaned=True)},
            )
            return
        logger.warning(
            "multipart_upload_aborted key=%s upload_id=%s",
            session.key,
            session.upload_id,
            extra={"extra": session.log_context()},
        )
