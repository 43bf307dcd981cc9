import asyncio
import signal

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from klip.config import Command, ServerArgs, TomlConfig, build_config
from klip.errors import CapacityReachedError
from klip.state import Content, State


def _server_config(max_clients=10):
    public = Ed25519PrivateKey.from_private_bytes(bytes(range(32))).public_key()
    sign_pk_hex = public.public_bytes(
        serialization.Encoding.Raw, serialization.PublicFormat.Raw
    ).hex()
    table = {"psk": "11" * 32, "sign_pk": sign_pk_hex}
    return build_config(TomlConfig(table), Command.SERVE, ServerArgs(max_clients=max_clients))


def test_new_state_is_empty():
    state = State(_server_config())
    assert state.content == Content()
    assert state.content.ts == 0
    assert state.content.signature == bytes(64)
    assert state.client_count == 0


def test_everyone_trusted_before_anyone_authenticates():
    state = State(_server_config())
    assert state.is_trusted_ip("192.0.2.1")
    assert state.is_trusted_ip("192.0.2.2")


def test_trusted_ips_evict_oldest():
    state = State(_server_config(max_clients=20))
    assert state.config.trusted_ip_count == 2
    for ip in ("192.0.2.1", "192.0.2.2", "192.0.2.3"):
        state.add_trusted_ip(ip)
    assert state.trusted_clients == ("192.0.2.2", "192.0.2.3")
    assert not state.is_trusted_ip("192.0.2.1")
    assert state.is_trusted_ip("192.0.2.3")


def test_capacity_reserved_for_trusted_peers():
    state = State(_server_config(max_clients=10))
    state.add_trusted_ip("192.0.2.1")
    limit = state.config.max_clients - state.config.trusted_ip_count
    for _ in range(limit):
        state.reserve_client("198.51.100.7")
    assert state.client_count == limit
    with pytest.raises(CapacityReachedError):
        state.reserve_client("198.51.100.7")
    state.reserve_client("192.0.2.1")
    assert state.client_count == limit + 1


def test_release_makes_room_again():
    state = State(_server_config(max_clients=10))
    state.add_trusted_ip("192.0.2.1")
    limit = state.config.max_clients - state.config.trusted_ip_count
    for _ in range(limit):
        state.reserve_client("198.51.100.7")
    state.release_client()
    assert state.client_count == limit - 1
    state.reserve_client("198.51.100.7")
    assert state.client_count == limit


def test_release_never_goes_negative():
    state = State(_server_config())
    state.release_client()
    assert state.client_count == 0


def test_status_when_empty():
    state = State(_server_config())
    assert state.clipboard_status("klip", now=1_000_000) == "klip: the clipboard is empty"


def test_status_recent_content():
    state = State(_server_config())
    state.content.ts = 1_000_000
    status = state.clipboard_status("klip", now=1_000_030)
    assert status.endswith("(last filled a few moments ago)")
    assert status.startswith("klip: the clipboard is not empty")


def test_status_future_timestamp_counts_as_recent():
    state = State(_server_config())
    state.content.ts = 1_000_000
    assert "a few moments ago" in state.clipboard_status("klip", now=999_000)


def test_status_in_minutes():
    state = State(_server_config())
    state.content.ts = 1_000_000
    assert state.clipboard_status("srv", now=1_000_600).endswith("(last filled 10 minutes ago)")


@pytest.mark.asyncio
async def test_siginfo_handler_installed_only_where_available():
    state = State(_server_config())
    loop = asyncio.get_running_loop()
    installed = state.install_siginfo_handler(loop)
    assert installed is hasattr(signal, "SIGINFO")
    if installed:
        loop.remove_signal_handler(signal.SIGINFO)