"""Errors raised by the client, the server and configuration loading."""

from __future__ import annotations

__all__ = [
    "AuthError",
    "CapacityReachedError",
    "ConfigParseError",
    "ContextError",
    "EmptyError",
    "IncompatibleVersionsError",
    "InvalidFieldError",
    "KlipError",
    "LargeError",
    "MaybeIncompatibleVersionError",
    "MissingFieldError",
    "NoHomeError",
    "OldError",
    "ProtocolUnsupportedError",
    "SecretKeyIDMismatchError",
    "ShortCiphertextError",
    "ShortError",
    "SignatureError",
    "UnknownOpError",
]

_MIB = 1024 * 1024


class KlipError(Exception):
    """Base class for every failure the protocol or configuration reports."""

    message = "klip error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(self.message if message is None else message)


class AuthError(KlipError):
    message = "authentication failed"


class CapacityReachedError(KlipError):
    message = "cannot accept any more clients"


class EmptyError(KlipError):
    message = "the clipboard may be empty"


class IncompatibleVersionsError(KlipError):
    def __init__(self, client: int, server: int) -> None:
        self.client = client
        self.server = server
        super().__init__(f"incompatible server version (client: {client}, server: {server})")


class InvalidFieldError(KlipError):
    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"invalid value for config field `{field}`")


class LargeError(KlipError):
    def __init__(self, max: int, got: int) -> None:  # noqa: A002
        self.max = max
        self.got = got
        super().__init__(
            f"{got} bytes requested to be stored, but limit set to {max} bytes "
            f"({max // _MIB} MiB)"
        )


class MaybeIncompatibleVersionError(KlipError):
    message = "the server may be running an incompatible version"


class MissingFieldError(KlipError):
    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"missing required config field `{field}`")


class NoHomeError(KlipError):
    message = "could not determine home directory"


class OldError(KlipError):
    message = "the clipboard content is too old"


class ProtocolUnsupportedError(KlipError):
    message = "the server doesn't support this protocol"


class SecretKeyIDMismatchError(KlipError):
    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"configured key ID is {expected:x}, but content was encrypted using key ID "
            f"{actual:x}"
        )


class ShortError(KlipError):
    message = "the clipboard content is too short"


class ShortCiphertextError(KlipError):
    def __init__(self, length: int) -> None:
        self.length = length
        super().__init__(f"short encrypted message (only {length} bytes)")


class SignatureError(KlipError):
    message = "signature verification failed"


class ConfigParseError(KlipError):
    def __init__(self, detail: object) -> None:
        self.detail = detail
        super().__init__(f"could not parse TOML config: {detail}")


class UnknownOpError(KlipError):
    message = "unknown opcode"


class ContextError(Exception):
    """An error together with a note on what was being done when it happened."""

    def __init__(self, context: str | None, error: BaseException) -> None:
        self.context = context
        self.error = error
        super().__init__(f"{context}: {error}" if context else str(error))