"""Cooperative cancellation for polling passes."""

from __future__ import annotations

import threading
from typing import Optional

__all__ = ["CancellationToken"]


class CancellationToken:
    """Advisory cancellation signal shared between a scheduler and the poller.

    The poller only reads the token; whoever owns the pass (a CLI signal
    handler, a test, a service shutdown hook) calls :meth:`cancel`.

    Example:
        >>> token = CancellationToken()
        >>> token.is_cancellation_requested
        False
        >>> token.cancel()
        >>> token.is_cancellation_requested
        True
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    @classmethod
    def none(cls) -> "CancellationToken":
        """Return a fresh token that nobody holds a reference to cancel."""
        return cls()

    @property
    def is_cancellation_requested(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block up to ``timeout`` seconds; return True if cancelled meanwhile."""
        return self._event.wait(timeout)

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.is_cancellation_requested})"
