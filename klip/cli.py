"""Command-line entry point."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import signal
import sys
import tomllib
from collections.abc import Iterator, Sequence
from pathlib import Path

from . import client
from .config import PROTOCOL_VERSION, Command, Config, ServerArgs, TomlConfig, build_config
from .errors import ConfigParseError, ContextError, KlipError, NoHomeError
from .keygen import generate_keys
from .server import serve
from .state import State
from .terminal import get_password, home_dir

__all__ = [
    "EXPANDED_VERSION",
    "VERSION",
    "build_parser",
    "default_config_file",
    "load_config",
    "main",
    "run",
]

VERSION = "0.1.0"
EXPANDED_VERSION = f"v{VERSION} (protocol version {PROTOCOL_VERSION})"
_CONFIG_NAME = ".klip.toml"


def _positive_int(text: str) -> int:
    value = int(text)
    if value < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return value


def _non_negative_int(text: str) -> int:
    value = int(text)
    if value < 0:
        raise argparse.ArgumentTypeError("must not be negative")
    return value


def build_parser() -> argparse.ArgumentParser:
    """The argument parser for the klip command."""
    parser = argparse.ArgumentParser(
        prog="klip", description="Copy/paste anything over the network"
    )
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {EXPANDED_VERSION}")
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        help="path to the configuration file (default=$HOME/.klip.toml)",
    )
    sub = parser.add_subparsers(dest="subcommand", required=True, metavar="COMMAND")
    for name, aliases, command, text in (
        ("copy", ["c"], Command.COPY, "store content"),
        ("paste", ["p"], Command.PASTE, "retrieve content"),
        ("move", ["m"], Command.MOVE, "retrieve and delete content"),
    ):
        sub.add_parser(name, aliases=aliases, help=text).set_defaults(command=command)

    serve_parser = sub.add_parser("serve", help="start a server")
    serve_parser.set_defaults(command=Command.SERVE)
    serve_parser.add_argument(
        "--max-clients",
        type=_positive_int,
        default=10,
        help="the maximum number of simultaneous client connections",
    )
    serve_parser.add_argument(
        "--max-len-mb",
        type=_non_negative_int,
        default=0,
        help="maximum content length to accept in MiB (0=unlimited)",
    )
    serve_parser.add_argument(
        "-t", "--timeout", type=_non_negative_int, default=10,
        help="connection timeout (in seconds)",
    )
    serve_parser.add_argument(
        "-d", "--data-timeout", type=_non_negative_int, default=3600,
        help="data transmission timeout (in seconds)",
    )

    keygen_parser = sub.add_parser("genkeys", help="generate keys")
    keygen_parser.set_defaults(command=Command.KEYGEN)
    keygen_parser.add_argument(
        "-p",
        "--password",
        action="store_true",
        help="derive the keys from a password (default=random keys)",
    )

    sub.add_parser("version", help="show version information").set_defaults(
        command=Command.VERSION
    )
    return parser


def default_config_file() -> Path:
    """The configuration file in the user's home directory."""
    home = home_dir()
    if home is None:
        raise NoHomeError()
    return home.resolve(strict=True) / _CONFIG_NAME


def load_config(path: Path, command: Command, server_args: ServerArgs | None = None) -> Config:
    """Read and parse the configuration file and build the settings for a command."""
    path = Path(path)
    try:
        resolved = path.resolve(strict=True)
    except OSError as exc:
        raise ContextError(f"failed to canonicalize config file path '{path}'", exc) from exc
    try:
        text = resolved.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ContextError(f"while reading config file at '{path}'", exc) from exc
    try:
        table = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ContextError("while parsing config file", ConfigParseError(exc)) from exc
    return build_config(TomlConfig(table), command, server_args)


def run(argv: Sequence[str] | None = None) -> None:
    """Parse the arguments and carry out the chosen command."""
    args = build_parser().parse_args(argv)
    command: Command = args.command
    config_file = args.config if args.config is not None else default_config_file()

    if command is Command.KEYGEN:
        key = ""
        if args.password:
            try:
                key = get_password()
            except (OSError, EOFError) as exc:
                raise ContextError("failed to read password interactively", exc) from exc
        generate_keys(config_file, key.encode())
        return

    server_args = None
    if command is Command.SERVE:
        server_args = ServerArgs(
            max_clients=args.max_clients,
            max_len_mb=args.max_len_mb,
            timeout=args.timeout,
            data_timeout=args.data_timeout,
        )
    config = load_config(config_file, command, server_args)

    if command is Command.VERSION:
        print(EXPANDED_VERSION)
    elif command is Command.COPY:
        asyncio.run(client.run(config, True, False))
    elif command is Command.MOVE:
        asyncio.run(client.run(config, False, True))
    elif command is Command.PASTE:
        asyncio.run(client.run(config, False, False))
    elif command is Command.SERVE:
        asyncio.run(serve(State(config)))


def _interrupt(signum: int, frame: object) -> None:
    raise KeyboardInterrupt


@contextlib.contextmanager
def _terminate_on_sigterm() -> Iterator[None]:
    sigterm = getattr(signal, "SIGTERM", None)
    previous = None
    if sigterm is not None:
        with contextlib.suppress(ValueError):
            previous = signal.signal(sigterm, _interrupt)
    try:
        yield
    finally:
        if previous is not None:
            signal.signal(sigterm, previous)


def main(argv: Sequence[str] | None = None) -> int:
    """Run klip and return the process exit status."""
    with _terminate_on_sigterm():
        try:
            run(argv)
        except KeyboardInterrupt:
            print("violently shutting down", file=sys.stderr)
            return 1
        except (KlipError, ContextError, OSError, EOFError) as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1
    return 0