"""Keyed BLAKE2b transcripts for each step of the handshake."""

from __future__ import annotations

import hashlib

__all__ = [
    "DOMAIN",
    "HASH_LENGTH",
    "auth0",
    "auth1",
    "auth2get",
    "auth2store",
    "auth3get",
    "auth3store",
]

DOMAIN = "KLIP"
HASH_LENGTH = 32
_PSK_LENGTH = 32


def _hasher(psk: bytes, salt: int) -> "hashlib._Hash":
    psk = bytes(psk)
    if len(psk) != _PSK_LENGTH:
        raise ValueError(f"psk must be {_PSK_LENGTH} bytes, got {len(psk)}")
    return hashlib.blake2b(
        digest_size=HASH_LENGTH,
        key=psk,
        salt=bytes([salt]),
        person=DOMAIN.encode(),
    )


def _digest(psk: bytes, salt: int, *parts: bytes) -> bytes:
    h = _hasher(psk, salt)
    for part in parts:
        h.update(part)
    return h.digest()


def auth0(psk: bytes, client_version: int, r: bytes) -> bytes:
    """Client hello: binds the protocol version to the client's nonce."""
    return _digest(psk, 0, bytes([client_version]), r)


def auth1(psk: bytes, client_version: int, h0: bytes, r2: bytes) -> bytes:
    """Server reply: binds the server nonce to the client hello."""
    return _digest(psk, 1, bytes([client_version]), r2, h0)


def auth2get(psk: bytes, h1: bytes, opcode: int) -> bytes:
    """Client request for a get or move operation."""
    return _digest(psk, 2, h1, bytes([opcode]))


def auth2store(psk: bytes, h1: bytes, opcode: int, ts: bytes, signature: bytes) -> bytes:
    """Client request for a store operation, covering timestamp and signature."""
    return _digest(psk, 2, h1, bytes([opcode]), ts, signature)


def auth3get(psk: bytes, h2: bytes, ts: bytes, signature: bytes) -> bytes:
    """Server answer to a get or move, covering timestamp and signature."""
    return _digest(psk, 3, h2, ts, signature)


def auth3store(psk: bytes, h2: bytes) -> bytes:
    """Server acknowledgement of a store."""
    return _digest(psk, 3, h2)