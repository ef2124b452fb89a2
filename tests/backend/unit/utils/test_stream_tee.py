from __future__ import annotations

from collections.abc import AsyncIterator

import pytest

from utils.stream_tee import StreamTee


async def _source(*chunks: bytes) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


async def _failing_source(*chunks: bytes) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk
    raise ConnectionResetError("upstream went away")


@pytest.mark.asyncio
async def test_forward_yields_chunks_unmodified_and_records_them() -> None:
    tee = StreamTee(_source(b"data: Hi", b" there\n\n"))

    forwarded = [chunk async for chunk in tee.forward()]

    assert forwarded == [b"data: Hi", b" there\n\n"]
    assert tee.getvalue() == b"data: Hi there\n\n"
    assert tee.completed is True
    assert tee.chunk_count == 2
    assert tee.byte_count == len(b"data: Hi there\n\n")


@pytest.mark.asyncio
async def test_multibyte_character_split_across_chunks_is_decoded_whole() -> None:
    encoded = "你好".encode()
    tee = StreamTee(_source(encoded[:2], encoded[2:4], encoded[4:]))

    async for _ in tee.forward():
        pass

    assert tee.text() == "你好"


@pytest.mark.asyncio
async def test_empty_chunks_are_skipped() -> None:
    tee = StreamTee(_source(b"", b"a", b"", b"b"))

    forwarded = [chunk async for chunk in tee.forward()]

    assert forwarded == [b"a", b"b"]
    assert tee.chunk_count == 2


@pytest.mark.asyncio
async def test_consumer_stopping_early_leaves_stream_incomplete() -> None:
    tee = StreamTee(_source(b"first", b"second", b"third"))
    gen = tee.forward()

    assert await gen.__anext__() == b"first"
    await gen.aclose()

    assert tee.completed is False
    assert tee.text() == "first"


@pytest.mark.asyncio
async def test_failing_source_propagates_and_keeps_received_bytes() -> None:
    tee = StreamTee(_failing_source(b"partial "))

    with pytest.raises(ConnectionResetError):
        async for _ in tee.forward():
            pass

    assert tee.completed is False
    assert tee.getvalue() == b"partial "


@pytest.mark.asyncio
async def test_truncated_multibyte_tail_is_replaced_not_raised() -> None:
    encoded = "é".encode()
    tee = StreamTee(_source(b"ok ", encoded[:1]))

    async for _ in tee.forward():
        pass

    assert tee.text() == "ok �"
