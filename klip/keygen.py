"""Generation of a fresh set of keys, random or derived from a password."""

from __future__ import annotations

import hashlib
import os

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from .config import DEFAULT_CONNECT, DEFAULT_LISTEN
from .util import to_hex

__all__ = ["DeterministicRandom", "generate_keys"]

_SCRYPT_N = 1 << 14
_SCRYPT_R = 12
_SCRYPT_P = 1
_POOL_SIZE = 96
_KEY_SIZE = 32
_SCRYPT_MAXMEM = 64 * 1024 * 1024


class DeterministicRandom:
    """A fixed pool of bytes stretched from a password with scrypt."""

    def __init__(self, key: bytes) -> None:
        self._pool = bytearray(
            hashlib.scrypt(
                bytes(key),
                salt=b"",
                n=_SCRYPT_N,
                r=_SCRYPT_R,
                p=_SCRYPT_P,
                maxmem=_SCRYPT_MAXMEM,
                dklen=_POOL_SIZE,
            )
        )
        self._pos = 0

    def fill_bytes(self, n: int) -> bytes:
        """Take the next n bytes of the pool, wiping them from it.

        Raises ValueError when fewer than n bytes remain.
        """
        if n < 0:
            raise ValueError("cannot take a negative number of bytes")
        end = self._pos + n
        if end > len(self._pool):
            raise ValueError("the pool does not hold enough bytes for this request")
        out = bytes(self._pool[self._pos:end])
        self._pool[self._pos:end] = bytes(n)
        self._pos = end
        return out


def _address(address: tuple[str, int]) -> str:
    host, port = address
    return f"{host}:{port}"


def generate_keys(config_file_name: object, key: bytes = b"") -> None:
    """Print configuration snippets holding a new set of keys.

    With an empty key the keys are random; otherwise they are derived from it.
    """
    fill = DeterministicRandom(key).fill_bytes if key else os.urandom
    psk_hex = to_hex(fill(_KEY_SIZE))
    encrypt_sk_hex = to_hex(fill(_KEY_SIZE))
    signing_key = Ed25519PrivateKey.from_private_bytes(fill(_KEY_SIZE))
    sign_sk_hex = to_hex(
        signing_key.private_bytes(
            serialization.Encoding.Raw,
            serialization.PrivateFormat.Raw,
            serialization.NoEncryption(),
        )
    )
    sign_pk_hex = to_hex(
        signing_key.public_key().public_bytes(
            serialization.Encoding.Raw, serialization.PublicFormat.Raw
        )
    )
    connect_line = f'connect    = "{_address(DEFAULT_CONNECT)}"\t# edit appropriately'
    listen_line = f'listen     = "{_address(DEFAULT_LISTEN)}"\t# edit appropriately'
    psk_line = f'psk        = "{psk_hex}"'
    sign_pk_line = f'sign_pk    = "{sign_pk_hex}"'
    sign_sk_line = f'sign_sk    = "{sign_sk_hex}"'
    encrypt_sk_line = f'encrypt_sk = "{encrypt_sk_hex}"'

    print(
        f"\n\n--- Create a file named {config_file_name} with only the lines relevant to "
        "your configuration ---\n\n"
    )
    print("# Configuration for a client\n")
    print(connect_line)
    print(psk_line)
    print(sign_pk_line)
    print(sign_sk_line)
    print(encrypt_sk_line)
    print()
    print("# Configuration for a server\n")
    print(listen_line)
    print(psk_line)
    print(sign_pk_line)
    print()
    print("# Hybrid configuration\n")
    print(connect_line)
    print(listen_line)
    print(psk_line)
    print(sign_pk_line)
    print(sign_sk_line)
    print(encrypt_sk_line)