"""The client side of the protocol: handshake, copy, paste and move."""

from __future__ import annotations

import asyncio
import contextlib
import hmac
import os
import sys
import time

from cryptography.exceptions import InvalidSignature

from .authentication import auth0, auth1, auth2get, auth2store, auth3get, auth3store
from .config import PROTOCOL_VERSION, Config
from .errors import (
    AuthError,
    EmptyError,
    IncompatibleVersionsError,
    MaybeIncompatibleVersionError,
    OldError,
    ProtocolUnsupportedError,
    SecretKeyIDMismatchError,
    ShortError,
    SignatureError,
)
from .terminal import isatty
from .util import Stream
from .xchacha20 import NONCE_SIZE, XChaCha20

__all__ = ["copy_operation", "handshake", "paste_operation", "run"]

_KEY_ID_SIZE = 8
_HEADER_SIZE = _KEY_ID_SIZE + NONCE_SIZE
_HELLO_REPLY_SIZE = 65
_GET_REPLY_SIZE = 112
_REJECTED = (
    "the server rejected the connection - check that it is running the same klip "
    "version or retry later"
)


def _zero_padded(partial: bytes, size: int) -> bytes:
    return partial + bytes(size - len(partial))


def _first_zero(buf: bytes) -> int | None:
    index = buf.find(0)
    return None if index < 0 else index


async def copy_operation(config: Config, stream: Stream, h1: bytes, content: bytes) -> None:
    """Encrypt, sign and store content on the server."""
    ts = int(time.time()).to_bytes(8, "little")
    key_id = config.encrypt_sk_id.to_bytes(_KEY_ID_SIZE, "little")
    nonce = os.urandom(NONCE_SIZE)
    ciphertext = XChaCha20(config.encrypt_sk, nonce).apply_keystream(content)
    blob = key_id + nonce + ciphertext
    signature = config.sign_sk.sign(blob)
    opcode = ord("S")
    stream.set_timeout(config.data_timeout)
    h2 = auth2store(config.psk, h1, opcode, ts, signature)
    await stream.write_all(bytes([opcode]))
    await stream.write_all(h2)
    await stream.write_all(len(blob).to_bytes(8, "little"))
    await stream.write_all(ts)
    await stream.write_all(signature)
    await stream.write_all(blob)
    await stream.flush()
    try:
        h3 = await stream.read_exact(32)
    except asyncio.IncompleteReadError:
        raise MaybeIncompatibleVersionError() from None
    if not hmac.compare_digest(auth3store(config.psk, h2), h3):
        raise AuthError()
    if isatty(True):
        print("Sent", file=sys.stderr)


async def paste_operation(config: Config, stream: Stream, h1: bytes, is_move: bool) -> bytes:
    """Fetch the stored content, verify it and return it decrypted.

    With is_move the server clears its copy after handing it over.
    """
    opcode = ord("M") if is_move else ord("G")
    h2 = auth2get(config.psk, h1, opcode)
    await stream.write_all(bytes([opcode]))
    await stream.write_all(h2)
    await stream.flush()
    try:
        reply = await stream.read_exact(_GET_REPLY_SIZE)
    except asyncio.IncompleteReadError as exc:
        zero = _first_zero(_zero_padded(exc.partial, _GET_REPLY_SIZE))
        if zero is not None and zero > 80:
            raise MaybeIncompatibleVersionError() from None
        raise EmptyError() from None
    h3 = reply[:32]
    declared_len = int.from_bytes(reply[32:40], "little")
    ts = reply[40:48]
    signature = reply[48:112]
    if not hmac.compare_digest(auth3get(config.psk, h2, ts, signature), h3):
        raise AuthError()
    if time.time() - int.from_bytes(ts, "little") >= config.ttl:
        raise OldError()
    if declared_len < _HEADER_SIZE:
        raise ShortError()
    stream.set_timeout(config.data_timeout)
    blob = await stream.read_to_end()
    if len(blob) < _HEADER_SIZE:
        raise ShortError()
    expected_id = config.encrypt_sk_id.to_bytes(_KEY_ID_SIZE, "little")
    if not hmac.compare_digest(blob[:_KEY_ID_SIZE], expected_id):
        raise SecretKeyIDMismatchError(
            config.encrypt_sk_id, int.from_bytes(blob[:_KEY_ID_SIZE], "little")
        )
    try:
        config.sign_pk.verify(signature, blob)
    except InvalidSignature:
        raise SignatureError() from None
    nonce = blob[_KEY_ID_SIZE:_HEADER_SIZE]
    return XChaCha20(config.encrypt_sk, nonce).apply_keystream(blob[_HEADER_SIZE:])


async def handshake(config: Config, stream: Stream) -> bytes:
    """Authenticate with the server and return the transcript hash h1."""
    r = os.urandom(32)
    h0 = auth0(config.psk, PROTOCOL_VERSION, r)
    await stream.write_all(bytes([PROTOCOL_VERSION]))
    await stream.write_all(r)
    await stream.write_all(h0)
    await stream.flush()
    try:
        reply = await stream.read_exact(_HELLO_REPLY_SIZE)
    except (asyncio.IncompleteReadError, OSError) as exc:
        partial = exc.partial if isinstance(exc, asyncio.IncompleteReadError) else b""
        zero = _first_zero(_zero_padded(partial, _HELLO_REPLY_SIZE))
        if zero is not None and zero < 2:
            raise ConnectionRefusedError(_REJECTED) from None
        raise ProtocolUnsupportedError() from None
    if reply[0] != PROTOCOL_VERSION:
        raise IncompatibleVersionsError(PROTOCOL_VERSION, reply[0])
    r2 = reply[1:33]
    h1 = reply[33:65]
    if not hmac.compare_digest(auth1(config.psk, PROTOCOL_VERSION, h0, r2), h1):
        raise AuthError()
    return h1


async def run(config: Config, is_copy: bool, is_move: bool) -> None:
    """Connect to the server and copy standard input, or paste to standard output."""
    host, port = config.connect
    reader, writer = await asyncio.wait_for(
        asyncio.open_connection(host, port), timeout=config.timeout
    )
    stream = Stream(reader, writer)
    try:
        h1 = await handshake(config, stream)
        if is_copy:
            content = await asyncio.to_thread(sys.stdin.buffer.read)
            await copy_operation(config, stream, h1, content)
        else:
            content = await paste_operation(config, stream, h1, is_move)
            sys.stdout.buffer.write(content)
            sys.stdout.buffer.flush()
    finally:
        writer.close()
        with contextlib.suppress(OSError):
            await writer.wait_closed()