"""Tests for the part chunker."""

from __future__ import annotations

import asyncio
import io

import pytest
from starlette.datastructures import UploadFile

from app.app.services.chunker import Part, iter_parts, iter_upload_file


async def _stream(*fragments: bytes):
    for fragment in fragments:
        yield fragment


def _collect(fragments, max_part_size: int) -> list[Part]:
    async def run():
        return [part async for part in iter_parts(fragments, max_part_size)]

    return asyncio.run(run())


class TestIterParts:
    @pytest.mark.parametrize(
        "fragments",
        [
            (b"a", b"bc", b"defgh", b"", b"ij"),
            (b"0123456789abcdef",),
            (b"x",) * 13,
            (b"abc", b"defg", b"hijkl", b"m"),
        ],
    )
    def test_round_trip_and_part_sizes(self, fragments):
        parts = _collect(_stream(*fragments), 4)

        assert b"".join(p.payload for p in parts) == b"".join(fragments)
        assert all(p.size == 4 for p in parts[:-1])
        assert 0 < parts[-1].size <= 4
        assert [p.index for p in parts] == list(range(1, len(parts) + 1))

    def test_empty_stream_yields_one_empty_part(self):
        parts = _collect(_stream(), 4)

        assert parts == [Part(index=1, payload=b"")]

    def test_stream_of_empty_fragments_yields_one_empty_part(self):
        parts = _collect(_stream(b"", b"", b""), 4)

        assert parts == [Part(index=1, payload=b"")]

    def test_exact_multiple_has_no_empty_tail(self):
        parts = _collect(_stream(b"abcd", b"ef", b"gh"), 4)

        assert [p.payload for p in parts] == [b"abcd", b"efgh"]

    def test_large_fragment_is_split(self):
        parts = _collect(_stream(b"0123456789"), 3)

        assert [p.payload for p in parts] == [b"012", b"345", b"678", b"9"]

    def test_25_mib_in_10_mib_parts(self):
        mib = 1024 * 1024
        fragments = [bytes([i]) * mib for i in range(25)]

        parts = _collect(_stream(*fragments), 10 * mib)

        assert [p.size for p in parts] == [10 * mib, 10 * mib, 5 * mib]
        assert b"".join(p.payload for p in parts) == b"".join(fragments)

    def test_rejects_non_positive_part_size(self):
        with pytest.raises(ValueError, match="positive"):
            _collect(_stream(b"abc"), 0)

    def test_source_error_propagates_after_emitted_parts(self):
        received: list[Part] = []

        async def failing():
            yield b"abcdef"
            raise ConnectionResetError("client went away")

        async def run():
            async for part in iter_parts(failing(), 4):
                received.append(part)

        with pytest.raises(ConnectionResetError, match="client went away"):
            asyncio.run(run())
        assert [p.payload for p in received] == [b"abcd"]

    def test_consumes_input_incrementally(self):
        consumed: list[int] = []

        async def tracked():
            for i in range(10):
                consumed.append(i)
                yield b"xy"

        async def first_part():
            parts = iter_parts(tracked(), 4)
            part = await parts.__anext__()
            await parts.aclose()
            return part

        part = asyncio.run(first_part())

        assert part.payload == b"xyxy"
        assert len(consumed) == 2


class TestIterUploadFile:
    def test_reads_file_in_chunks(self):
        upload = UploadFile(file=io.BytesIO(b"hello world"), filename="hello.txt")

        async def run():
            return [chunk async for chunk in iter_upload_file(upload, 4)]

        chunks = asyncio.run(run())

        assert chunks == [b"hell", b"o wo", b"rld"]

    def test_empty_file_yields_nothing(self):
        upload = UploadFile(file=io.BytesIO(b""), filename="empty.txt")

        async def run():
            return [chunk async for chunk in iter_upload_file(upload, 4)]

        assert asyncio.run(run()) == []
