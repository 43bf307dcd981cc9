"""Terminal checks, the home directory and reading a password without echo."""

from __future__ import annotations

import contextlib
import os
import sys
from collections.abc import Iterator
from pathlib import Path

try:
    import termios
except ImportError:  # pragma: no cover - not a POSIX system
    termios = None

try:
    import msvcrt
except ImportError:
    msvcrt = None

__all__ = ["fix_line", "get_password", "home_dir", "isatty", "read_password"]

_PROMPT = "Password: "
_KILL_LINE = "\x15"


def isatty(stderr: bool) -> bool:
    """Whether standard error (or standard output) is attached to a terminal."""
    stream = sys.stderr if stderr else sys.stdout
    try:
        return os.isatty(stream.fileno())
    except (AttributeError, OSError, ValueError):
        return False


def home_dir() -> Path | None:
    """The current user's home directory, or None when it cannot be found."""
    if os.name == "nt":
        profile = os.environ.get("USERPROFILE")
        if profile:
            return Path(profile)
    try:
        home = Path.home()
    except (RuntimeError, KeyError):
        return None
    if str(home) == "~":
        return None
    return home


def fix_line(line: str) -> str:
    """Strip the line ending and anything up to a kill-line character.

    Raises EOFError when the line was not terminated by a newline.
    """
    if not line.endswith("\n"):
        raise EOFError("input ended before a newline")
    line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    _, kill, rest = line.partition(_KILL_LINE)
    return rest if kill else line


@contextlib.contextmanager
def _hidden(fd: int) -> Iterator[None]:
    original = termios.tcgetattr(fd)
    quiet = termios.tcgetattr(fd)
    quiet[3] &= ~termios.ECHO
    quiet[3] |= termios.ECHONL
    termios.tcsetattr(fd, termios.TCSANOW, quiet)
    try:
        yield
    finally:
        termios.tcsetattr(fd, termios.TCSANOW, original)


def _print_tty(prompt: str) -> None:
    if termios is not None:
        with open("/dev/tty", "w", encoding="utf-8") as tty:
            tty.write(prompt)
            tty.flush()
    elif msvcrt is not None:
        with open("CONOUT$", "w", encoding="utf-8") as console:
            console.write(prompt)
            console.flush()
    else:
        sys.stdout.write(prompt)
        sys.stdout.flush()


def _read_console_line() -> str:
    chars: list[str] = []
    while True:
        ch = msvcrt.getwch()
        if ch in ("\r", "\n"):
            return "".join(chars) + "\n"
        if ch == "\x03":
            raise KeyboardInterrupt
        if ch == "\x08":
            if chars:
                chars.pop()
            continue
        chars.append(ch)


def read_password() -> str:
    """Read one line from the controlling terminal with echo turned off."""
    if termios is not None:
        with open("/dev/tty", "r", encoding="utf-8") as tty:
            with _hidden(tty.fileno()):
                line = tty.readline()
        return fix_line(line)
    if msvcrt is not None:
        try:
            line = _read_console_line()
        finally:
            print()
        return fix_line(line)
    with open("/dev/tty", "r", encoding="utf-8") as tty:
        line = tty.readline()
    return fix_line(line)


def get_password() -> str:
    """Read a password from the terminal, or from standard input without one."""
    if isatty(False):
        _print_tty(_PROMPT)
        return read_password()
    return fix_line(sys.stdin.readline())