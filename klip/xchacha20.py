"""XChaCha20 stream cipher (20 rounds, 192-bit nonce, 32-bit block counter)."""

from __future__ import annotations

import struct

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms

__all__ = ["BLOCK_SIZE", "KEY_SIZE", "NONCE_SIZE", "KeystreamExhaustedError", "XChaCha20", "hchacha20"]

KEY_SIZE = 32
NONCE_SIZE = 24
BLOCK_SIZE = 64

_ROUNDS = 10
_MASK = 0xFFFFFFFF
_CONSTANTS = (0x6170_7865, 0x3320_646E, 0x7962_2D32, 0x6B20_6574)
_DOUBLE_ROUND = (
    (0, 4, 8, 12),
    (1, 5, 9, 13),
    (2, 6, 10, 14),
    (3, 7, 11, 15),
    (0, 5, 10, 15),
    (1, 6, 11, 12),
    (2, 7, 8, 13),
    (3, 4, 9, 14),
)


class KeystreamExhaustedError(Exception):
    """Raised when a request would run past the end of the keystream."""


def _rotl(value: int, shift: int) -> int:
    return ((value << shift) & _MASK) | (value >> (32 - shift))


def _quarter_round(state: list[int], a: int, b: int, c: int, d: int) -> None:
    state[a] = (state[a] + state[b]) & _MASK
    state[d] = _rotl(state[d] ^ state[a], 16)
    state[c] = (state[c] + state[d]) & _MASK
    state[b] = _rotl(state[b] ^ state[c], 12)
    state[a] = (state[a] + state[b]) & _MASK
    state[d] = _rotl(state[d] ^ state[a], 8)
    state[c] = (state[c] + state[d]) & _MASK
    state[b] = _rotl(state[b] ^ state[c], 7)


def _require_length(name: str, value: bytes, length: int) -> bytes:
    value = bytes(value)
    if len(value) != length:
        raise ValueError(f"{name} must be {length} bytes, got {len(value)}")
    return value


def hchacha20(key: bytes, data: bytes) -> bytes:
    """Derive a 32-byte subkey from a 32-byte key and 16 bytes of input."""
    key = _require_length("key", key, KEY_SIZE)
    data = _require_length("input", data, 16)
    state = [*_CONSTANTS, *struct.unpack("<8I", key), *struct.unpack("<4I", data)]
    for _ in range(_ROUNDS):
        for indices in _DOUBLE_ROUND:
            _quarter_round(state, *indices)
    return struct.pack("<8I", *state[:4], *state[12:])


class XChaCha20:
    """A keystream that may be applied to data in pieces of any size."""

    def __init__(self, key: bytes, nonce: bytes) -> None:
        key = _require_length("key", key, KEY_SIZE)
        nonce = _require_length("nonce", nonce, NONCE_SIZE)
        self._subkey = hchacha20(key, nonce[:16])
        self._nonce_tail = bytes(4) + nonce[16:]
        self._counter = 0
        self._pending = b""

    def __repr__(self) -> str:
        return "XChaCha20"

    def _keystream_blocks(self, count: int) -> bytes:
        if count == 0:
            return b""
        nonce = self._counter.to_bytes(4, "little") + self._nonce_tail
        encryptor = Cipher(algorithms.ChaCha20(self._subkey, nonce), mode=None).encryptor()
        blocks = encryptor.update(bytes(BLOCK_SIZE * count)) + encryptor.finalize()
        self._counter += count
        return blocks

    def apply_keystream(self, data: bytes) -> bytes:
        """XOR the next len(data) keystream bytes into data and return the result.

        Raises KeystreamExhaustedError, leaving the cipher untouched, when the
        keystream would run out.
        """
        data = bytes(data)
        length = len(data)
        needed = length - len(self._pending)
        blocks = 0
        if needed > 0:
            blocks = -(-needed // BLOCK_SIZE)
            if blocks > _MASK - self._counter:
                raise KeystreamExhaustedError("the end of the keystream would be reached")
        if needed <= 0:
            keystream, self._pending = self._pending[:length], self._pending[length:]
        else:
            fresh = self._keystream_blocks(blocks)
            keystream = self._pending + fresh[:needed]
            self._pending = fresh[needed:]
        mixed = int.from_bytes(data, "little") ^ int.from_bytes(keystream, "little")
        return mixed.to_bytes(length, "little")