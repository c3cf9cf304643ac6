"""Concatenation of ordered byte sources into one readable stream."""

import logging
from collections.abc import AsyncIterator, Sequence
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


@runtime_checkable
class ByteSource(Protocol):
    """Anything readable like an aiobotocore ``StreamingBody``."""

    async def read(self, amt: int | None = None) -> bytes:
        """Read up to ``amt`` bytes; ``b""`` signals end of data."""
        ...

    def close(self) -> None:
        """Release the underlying connection."""
        ...


class CombinedReader:
    """Reads a sequence of byte sources back to back.

    Source ``i + 1`` is only read once source ``i`` has returned ``b""``.
    A read error closes the reader and propagates once; afterwards the
    reader is exhausted and returns ``b""``.

    Example:
        reader = CombinedReader([body_a, body_b])
        async for chunk in reader:
            sys.stdout.buffer.write(chunk)
    """

    def __init__(
        self,
        sources: Sequence[ByteSource],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        """Initialize the reader.

        Args:
            sources: Byte sources in the order they should be read
            chunk_size: Read size used by iteration and ``read()``
        """
        self._sources = list(sources)
        self._cursor = 0
        self.chunk_size = chunk_size

    @property
    def cursor(self) -> int:
        """Index of the source currently being read."""
        return self._cursor

    @property
    def exhausted(self) -> bool:
        return self._cursor >= len(self._sources)

    def __len__(self) -> int:
        return len(self._sources)

    async def read(self, amt: int | None = None) -> bytes:
        """Read up to ``amt`` bytes, or everything left when ``amt`` is None.

        Args:
            amt: Maximum number of bytes to return

        Returns:
            The bytes read; ``b""`` once every source is exhausted
        """
        if amt is None or amt < 0:
            data = bytearray()
            while True:
                chunk = await self._read_chunk(self.chunk_size)
                if not chunk:
                    return bytes(data)
                data.extend(chunk)
        if amt == 0:
            return b""
        return await self._read_chunk(amt)

    async def _read_chunk(self, amt: int) -> bytes:
        while self._cursor < len(self._sources):
            source = self._sources[self._cursor]
            try:
                chunk = await source.read(amt)
            except Exception as e:
                logger.error(f"Source {self._cursor} of {len(self._sources)} failed: {e}")
                self.close()
                raise
            if chunk:
                return chunk
            source.close()
            self._cursor += 1
        return b""

    async def iter_chunks(
        self, chunk_size: int | None = None
    ) -> AsyncIterator[bytes]:
        """Yield chunks of at most ``chunk_size`` bytes until exhausted."""
        chunk_size = chunk_size or self.chunk_size
        while True:
            chunk = await self._read_chunk(chunk_size)
            if not chunk:
                break
            yield chunk

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.iter_chunks()

    def close(self) -> None:
        """Close every source that has not been fully read yet."""
        for source in self._sources[self._cursor:]:
            source.close()
        self._cursor = len(self._sources)

    async def __aenter__(self) -> "CombinedReader":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()
