"""Shared server state: the stored clipboard, trusted peers and client accounting."""

from __future__ import annotations

import asyncio
import signal
import sys
import time
from collections import deque
from dataclasses import dataclass

from .config import Config
from .errors import CapacityReachedError

__all__ = ["Content", "State"]

_SIGNATURE_SIZE = 64


@dataclass
class Content:
    """What the server currently holds. A timestamp of 0 means nothing is stored."""

    ts: int = 0
    signature: bytes = bytes(_SIGNATURE_SIZE)
    ciphertext: bytes = b""


class State:
    """Everything the server's connections share."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self.content = Content()
        self._trusted: deque[str] = deque()
        self._client_count = 0

    @property
    def client_count(self) -> int:
        """Number of connections currently being served."""
        return self._client_count

    @property
    def trusted_clients(self) -> tuple[str, ...]:
        """Addresses of the most recently authenticated peers, oldest first."""
        return tuple(self._trusted)

    def add_trusted_ip(self, ip: str) -> None:
        """Remember a peer that passed authentication, forgetting the oldest if full."""
        if len(self._trusted) >= self.config.trusted_ip_count:
            if self._trusted:
                self._trusted.popleft()
        self._trusted.append(ip)

    def is_trusted_ip(self, ip: str) -> bool:
        """Whether a peer is trusted; everyone is while no peer has authenticated."""
        return not self._trusted or ip in self._trusted

    def reserve_client(self, ip: str) -> None:
        """Count a new connection, keeping some room for trusted peers.

        Raises CapacityReachedError when an untrusted peer would exceed the limit.
        """
        limit = self.config.max_clients - self.config.trusted_ip_count
        if self._client_count >= limit and not self.is_trusted_ip(ip):
            raise CapacityReachedError()
        self._client_count += 1

    def release_client(self) -> None:
        """Stop counting a finished connection."""
        if self._client_count > 0:
            self._client_count -= 1

    def clipboard_status(self, name: str, now: int | None = None) -> str:
        """A one-line report on whether the clipboard holds anything, and since when."""
        ts = self.content.ts
        if ts == 0:
            return f"{name}: the clipboard is empty"
        if now is None:
            now = int(time.time())
        elapsed = max(now - ts, 0) // 60
        when = "a few moments ago" if elapsed <= 1 else f"{elapsed} minutes ago"
        return f"{name}: the clipboard is not empty (last filled {when})"

    def install_siginfo_handler(self, loop: asyncio.AbstractEventLoop | None = None) -> bool:
        """Print the clipboard status on SIGINFO where the platform has it.

        Returns whether a handler was installed.
        """
        siginfo = getattr(signal, "SIGINFO", None)
        if siginfo is None:
            return False
        if loop is None:
            loop = asyncio.get_running_loop()
        name = sys.argv[0] if sys.argv and sys.argv[0] else "klip"
        loop.add_signal_handler(siginfo, lambda: print(self.clipboard_status(name), flush=True))
        return True