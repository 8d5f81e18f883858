"""Re-buffering of an upload stream into fixed-size multipart parts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator

from starlette.datastructures import UploadFile


@dataclass(frozen=True, slots=True)
class Part:
    """One unit of a multipart upload. ``index`` is 1-based."""

    index: int
    payload: bytes

    @property
    def size(self) -> int:
        return len(self.payload)


async def iter_parts(
    fragments: AsyncIterable[bytes], max_part_size: int
) -> AsyncIterator[Part]:
    """Yield parts of exactly ``max_part_size`` bytes, plus a shorter tail.

    Fragments may have any size. Only the final part can be shorter than
    ``max_part_size``. An empty stream still yields a single empty part, since
    a multipart session cannot be completed with zero parts. Errors raised by
    ``fragments`` propagate unchanged.
    """
    if max_part_size <= 0:
        raise ValueError("max_part_size must be positive")

    buffer = bytearray()
    index = 0
    async for fragment in fragments:
        if not fragment:
            continue
        buffer.extend(fragment)
        while len(buffer) >= max_part_size:
            index += 1
            yield Part(index=index, payload=bytes(buffer[:max_part_size]))
            del buffer[:max_part_size]

    if buffer or index == 0:
        yield Part(index=index + 1, payload=bytes(buffer))


async def iter_upload_file(file: UploadFile, read_size: int) -> AsyncIterator[bytes]:
    """Read an uploaded form file as a stream of fragments."""
    while True:
        chunk = await file.read(read_size)
        if not chunk:
            break
        yield chunk
