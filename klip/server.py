"""The server side of the protocol: authenticate clients and hold one clipboard."""

from __future__ import annotations

import asyncio
import contextlib
import hmac
import os
import sys

from cryptography.exceptions import InvalidSignature

from .authentication import auth0, auth1, auth2get, auth2store, auth3get, auth3store
from .config import PROTOCOL_VERSION
from .errors import (
    AuthError,
    IncompatibleVersionsError,
    KlipError,
    LargeError,
    ShortCiphertextError,
    SignatureError,
    UnknownOpError,
)
from .state import Content, State
from .util import Stream

__all__ = [
    "get_operation",
    "handle_connection",
    "maybe_accept_client",
    "serve",
    "store_operation",
]

_HASH_SIZE = 32
_HELLO_SIZE = 65
_STORE_HEADER_SIZE = 112
_MIN_CIPHERTEXT = 32
_EMPTY_SIGNATURE = bytes(64)


async def get_operation(state: State, stream: Stream, h1: bytes, is_move: bool) -> None:
    """Send the stored content to the client; with is_move, clear it afterwards."""
    config = state.config
    h2 = await stream.read_exact(_HASH_SIZE)
    opcode = ord("M") if is_move else ord("G")
    if not hmac.compare_digest(auth2get(config.psk, h1, opcode), h2):
        raise AuthError()
    content = state.content
    if is_move:
        state.content = Content()
    ts = content.ts
    ciphertext = content.ciphertext
    signature = b"" if content.signature == _EMPTY_SIGNATURE else content.signature
    ts_bytes = ts.to_bytes(8, "little")
    stream.set_timeout(config.data_timeout)
    await stream.write_all(auth3get(config.psk, h2, ts_bytes, signature))
    await stream.write_all(len(ciphertext).to_bytes(8, "little"))
    if ts == 0:
        await stream.flush()
        return
    await stream.write_all(ts_bytes)
    await stream.write_all(signature)
    await stream.write_all(ciphertext)
    await stream.flush()


async def store_operation(state: State, stream: Stream, h1: bytes) -> None:
    """Receive, check and keep the content a client sends."""
    config = state.config
    header = await stream.read_exact(_STORE_HEADER_SIZE)
    h2 = header[:32]
    length = int.from_bytes(header[32:40], "little")
    if length < _MIN_CIPHERTEXT:
        raise ShortCiphertextError(length)
    if config.max_len > 0 and length > config.max_len:
        raise LargeError(config.max_len, length)
    ts_bytes = header[40:48]
    signature = header[48:112]
    if not hmac.compare_digest(
        auth2store(config.psk, h1, ord("S"), ts_bytes, signature), h2
    ):
        raise AuthError()
    stream.set_timeout(config.data_timeout)
    ciphertext = await stream.read_exact(length)
    try:
        config.sign_pk.verify(signature, ciphertext)
    except InvalidSignature:
        raise SignatureError() from None
    h3 = auth3store(config.psk, h2)
    state.content = Content(
        ts=int.from_bytes(ts_bytes, "little"),
        signature=signature,
        ciphertext=ciphertext,
    )
    stream.set_timeout(config.data_timeout)
    await stream.write_all(h3)
    await stream.flush()


async def handle_connection(state: State, stream: Stream) -> None:
    """Run the handshake with one client, then carry out the operation it asks for."""
    config = state.config
    remote_addr = stream.peer_addr()
    hello = await stream.read_exact(_HELLO_SIZE)
    client_version = hello[0]
    if client_version != PROTOCOL_VERSION:
        raise IncompatibleVersionsError(client_version, PROTOCOL_VERSION)
    r = hello[1:33]
    h0 = hello[33:65]
    if not hmac.compare_digest(auth0(config.psk, client_version, r), h0):
        raise AuthError()
    r2 = os.urandom(32)
    h1 = auth1(config.psk, client_version, h0, r2)
    await stream.write_all(bytes([client_version]))
    await stream.write_all(r2)
    await stream.write_all(h1)
    await stream.flush()
    state.add_trusted_ip(remote_addr[0])
    opcode = (await stream.read_exact(1))[0]
    if opcode == ord("G"):
        await get_operation(state, stream, h1, False)
    elif opcode == ord("M"):
        await get_operation(state, stream, h1, True)
    elif opcode == ord("S"):
        await store_operation(state, stream, h1)
    else:
        raise UnknownOpError()


async def maybe_accept_client(
    state: State, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
) -> None:
    """Serve one connection unless the server is full; report failures on stderr."""
    stream = Stream(reader, writer)
    try:
        state.reserve_client(stream.peer_addr()[0])
    except (KlipError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        writer.close()
        return
    error: BaseException | None = None
    try:
        stream.set_timeout(state.config.timeout)
        await handle_connection(state, stream)
    except (KlipError, OSError, EOFError) as exc:
        error = exc
    finally:
        state.release_client()
    with contextlib.suppress(OSError):
        await stream.shutdown()
    if error is not None:
        print(f"error: {error}", file=sys.stderr)


async def serve(state: State) -> None:
    """Listen on the configured address and serve clients until cancelled."""
    state.install_siginfo_handler()
    host, port = state.config.listen
    server = await asyncio.start_server(
        lambda reader, writer: maybe_accept_client(state, reader, writer), host, port
    )
    async with server:
        await server.serve_forever()