"""Configuration file fields and the settings a command runs with."""

from __future__ import annotations

import enum
import hashlib
import ipaddress
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from .authentication import DOMAIN
from .errors import InvalidFieldError, MissingFieldError
from .util import from_hex, to_hex

__all__ = [
    "CLIENT_DATA_TIMEOUT",
    "CLIENT_TIMEOUT",
    "Command",
    "Config",
    "DEFAULT_CONNECT",
    "DEFAULT_LISTEN",
    "DEFAULT_TTL",
    "PROTOCOL_VERSION",
    "ServerArgs",
    "TomlConfig",
    "build_config",
    "parse_address",
]

PROTOCOL_VERSION = 1
DEFAULT_LISTEN: tuple[str, int] = ("0.0.0.0", 8075)
DEFAULT_CONNECT: tuple[str, int] = ("127.0.0.1", 8075)
DEFAULT_TTL = 7 * 24 * 60 * 60
CLIENT_TIMEOUT = 10
CLIENT_DATA_TIMEOUT = 3600

_MIB = 1024 * 1024
_KEY_SIZE = 32
_KEY_ID_SIZE = 8
_DECIMAL = frozenset("0123456789")


class Command(enum.Enum):
    """What the program was asked to do."""

    COPY = "copy"
    PASTE = "paste"
    MOVE = "move"
    SERVE = "serve"
    KEYGEN = "genkeys"
    VERSION = "version"


@dataclass(frozen=True)
class ServerArgs:
    """Options that only apply when running a server."""

    max_clients: int = 10
    max_len_mb: int = 0
    timeout: int = 10
    data_timeout: int = 3600

    def __post_init__(self) -> None:
        if self.max_clients < 1:
            raise ValueError("max_clients must be at least 1")
        for name in ("max_len_mb", "timeout", "data_timeout"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")


def parse_address(text: str, default: tuple[str, int]) -> tuple[str, int]:
    """Parse "ip:port" or "[ipv6]:port"; fall back to `default` on anything else."""
    host, sep, port_text = text.rpartition(":")
    if not sep or not port_text or not set(port_text) <= _DECIMAL:
        return default
    port = int(port_text)
    if port > 0xFFFF:
        return default
    try:
        if host.startswith("[") and host.endswith("]"):
            ip: ipaddress.IPv4Address | ipaddress.IPv6Address = ipaddress.IPv6Address(host[1:-1])
        else:
            ip = ipaddress.IPv4Address(host)
    except ValueError:
        return default
    return str(ip), port


def _format_address(address: tuple[str, int]) -> str:
    host, port = address
    return f"[{host}]:{port}" if ":" in host else f"{host}:{port}"


def _public_raw(key: Ed25519PublicKey) -> bytes:
    return key.public_bytes(serialization.Encoding.Raw, serialization.PublicFormat.Raw)


def _private_raw(key: Ed25519PrivateKey) -> bytes:
    return key.private_bytes(
        serialization.Encoding.Raw,
        serialization.PrivateFormat.Raw,
        serialization.NoEncryption(),
    )


class TomlConfig:
    """Typed access to the fields of a parsed configuration table."""

    def __init__(self, table: Mapping[str, Any]) -> None:
        self._table = table

    def _string(self, name: str) -> str | None:
        value = self._table.get(name)
        return value if isinstance(value, str) else None

    def _hex_field(self, name: str, length: int) -> bytes:
        text = self._string(name)
        if text is None:
            raise MissingFieldError(name)
        try:
            return from_hex(text, length)
        except ValueError:
            raise InvalidFieldError(name) from None

    def connect(self) -> tuple[str, int]:
        text = self._string("connect")
        return DEFAULT_CONNECT if text is None else parse_address(text, DEFAULT_CONNECT)

    def listen(self) -> tuple[str, int]:
        text = self._string("listen")
        return DEFAULT_LISTEN if text is None else parse_address(text, DEFAULT_LISTEN)

    def encrypt_sk(self) -> bytes:
        return self._hex_field("encrypt_sk", _KEY_SIZE)

    def encrypt_sk_id(self) -> int:
        """The configured key ID, or one derived from the encryption key."""
        text = self._string("encrypt_sk_id")
        if text is not None:
            try:
                raw = from_hex(text, _KEY_ID_SIZE)
            except ValueError:
                raise InvalidFieldError("encrypt_sk_id") from None
        else:
            raw = hashlib.blake2b(
                self.encrypt_sk(), digest_size=_KEY_ID_SIZE, person=DOMAIN.encode()
            ).digest()
        return int.from_bytes(raw, "little")

    def psk(self) -> bytes:
        return self._hex_field("psk", _KEY_SIZE)

    def sign_pk(self) -> Ed25519PublicKey:
        raw = self._hex_field("sign_pk", _KEY_SIZE)
        try:
            return Ed25519PublicKey.from_public_bytes(raw)
        except ValueError:
            raise InvalidFieldError("sign_pk") from None

    def sign_sk(self) -> Ed25519PrivateKey:
        return Ed25519PrivateKey.from_private_bytes(self._hex_field("sign_sk", _KEY_SIZE))

    def ttl(self) -> int:
        """Seconds after which stored content counts as too old."""
        value = self._table.get("ttl")
        if type(value) is int and value > 0:
            return value
        return DEFAULT_TTL


@dataclass(frozen=True, repr=False, eq=False)
class Config:
    """Everything a client or server needs to run. Durations are in seconds."""

    connect: tuple[str, int]
    listen: tuple[str, int]
    max_clients: int
    max_len: int
    encrypt_sk: bytes
    encrypt_sk_id: int
    psk: bytes
    sign_pk: Ed25519PublicKey
    sign_sk: Ed25519PrivateKey
    timeout: int
    data_timeout: int
    ttl: int
    trusted_ip_count: int

    def describe(self, show_secrets: bool = False) -> str:
        """A readable summary; key material only appears when asked for."""
        parts = [
            f"connect={_format_address(self.connect)}",
            f"listen={_format_address(self.listen)}",
            f"max_clients={self.max_clients}",
            f"max_len={self.max_len}",
            f"timeout={self.timeout}s",
            f"data_timeout={self.data_timeout}s",
            f"ttl={self.ttl}s",
            f"trusted_ip_count={self.trusted_ip_count}",
        ]
        if show_secrets:
            parts += [
                f"encrypt_sk={to_hex(self.encrypt_sk)}",
                f"encrypt_sk_id={to_hex(self.encrypt_sk_id.to_bytes(_KEY_ID_SIZE, 'little'))}",
                f"psk={to_hex(self.psk)}",
                f"sign_pk={to_hex(_public_raw(self.sign_pk))}",
                f"sign_sk={to_hex(_private_raw(self.sign_sk))}",
            ]
        else:
            parts.append("...")
        return f"Config({', '.join(parts)})"

    def __repr__(self) -> str:
        return self.describe(False)


def build_config(
    toml_config: TomlConfig, command: Command, server_args: ServerArgs | None = None
) -> Config:
    """Combine the file's fields with the command's options.

    A server needs no encryption or signing secret; a client needs both.
    """
    serving = command is Command.SERVE
    args = server_args if server_args is not None else ServerArgs()
    connect = toml_config.connect()
    listen = toml_config.listen()
    max_len = args.max_len_mb * _MIB if serving else 1
    max_clients = args.max_clients if serving else 1
    encrypt_sk = bytes(_KEY_SIZE) if serving else toml_config.encrypt_sk()
    encrypt_sk_id = 0 if serving else toml_config.encrypt_sk_id()
    psk = toml_config.psk()
    sign_pk = toml_config.sign_pk()
    sign_sk = (
        Ed25519PrivateKey.from_private_bytes(bytes(_KEY_SIZE))
        if serving
        else toml_config.sign_sk()
    )
    return Config(
        connect=connect,
        listen=listen,
        max_clients=max_clients,
        max_len=max_len,
        encrypt_sk=encrypt_sk,
        encrypt_sk_id=encrypt_sk_id,
        psk=psk,
        sign_pk=sign_pk,
        sign_sk=sign_sk,
        timeout=args.timeout if serving else CLIENT_TIMEOUT,
        data_timeout=args.data_timeout if serving else CLIENT_DATA_TIMEOUT,
        ttl=toml_config.ttl(),
        trusted_ip_count=max(args.max_clients // 10, 1) if serving else 0,
    )