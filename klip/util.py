"""Hex helpers and a deadline-aware wrapper around asyncio streams."""

from __future__ import annotations

import asyncio
import string

__all__ = ["Stream", "from_hex", "to_hex"]

_HEX_DIGITS = frozenset(string.hexdigits)


def to_hex(data: bytes) -> str:
    """Encode bytes as lowercase hex."""
    return bytes(data).hex()


def from_hex(text: str, length: int) -> bytes:
    """Decode exactly `length` bytes from hex text (either case).

    Raises ValueError when the text has the wrong length or a non-hex character.
    """
    if len(text) % 2 != 0:
        raise ValueError("hex text has an odd number of characters")
    if len(text) != length * 2:
        raise ValueError(f"expected {length * 2} hex characters, got {len(text)}")
    if not all(ch in _HEX_DIGITS for ch in text):
        raise ValueError("invalid hex character")
    return bytes.fromhex(text)


class Stream:
    """A reader/writer pair whose operations share an optional absolute deadline.

    Timeouts raise TimeoutError. Reading past the end of the stream raises
    asyncio.IncompleteReadError, whose `partial` holds what was read.
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._reader = reader
        self._writer = writer
        self._deadline: float | None = None

    def set_timeout(self, seconds: float) -> None:
        """Set a deadline `seconds` from now for every later operation."""
        self._deadline = asyncio.get_running_loop().time() + seconds

    async def read_exact(self, n: int) -> bytes:
        async with asyncio.timeout_at(self._deadline):
            return await self._reader.readexactly(n)

    async def read_to_end(self) -> bytes:
        async with asyncio.timeout_at(self._deadline):
            return await self._reader.read()

    async def write_all(self, data: bytes) -> None:
        async with asyncio.timeout_at(self._deadline):
            self._writer.write(bytes(data))

    async def flush(self) -> None:
        async with asyncio.timeout_at(self._deadline):
            await self._writer.drain()

    def peer_addr(self) -> tuple:
        peer = self._writer.get_extra_info("peername")
        if peer is None:
            raise OSError("peer address is unavailable")
        return peer

    async def shutdown(self) -> None:
        """Flush pending data and close the connection."""
        try:
            await self.flush()
        finally:
            self._writer.close()
            await self._writer.wait_closed()