"""
Single-source, two-sink fan-out for byte streams.

``StreamTee.forward()`` yields every upstream chunk unmodified to the
response while appending the same bytes to a private accumulator. Once the
relay is drained the accumulator is decoded as a whole, so a multi-byte
UTF-8 character split across two chunks is stored intact.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator


class StreamTee:
    """Forward an async byte stream while keeping a copy of every chunk.

    ``completed`` is only set when the source is exhausted; a consumer that
    stops early (client disconnect) or a source that fails leaves it False.
    """

    def __init__(self, source: AsyncIterable[bytes]):
        self._source = source
        self._chunks: list[bytes] = []
        self.completed = False

    async def forward(self) -> AsyncIterator[bytes]:
        async for chunk in self._source:
            if not chunk:
                continue
            self._chunks.append(chunk)
            yield chunk
        self.completed = True

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    @property
    def byte_count(self) -> int:
        return sum(len(c) for c in self._chunks)

    def getvalue(self) -> bytes:
        """All forwarded bytes, in order."""
        return b"".join(self._chunks)

    def text(self) -> str:
        """Accumulated bytes decoded as UTF-8.

        An interrupted stream may end inside a multi-byte character; that
        trailing fragment becomes U+FFFD instead of failing the write.
        """
        return self.getvalue().decode("utf-8", errors="replace")
