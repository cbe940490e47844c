"""Cooperative cancellation signal threaded through every pipeline stage.

``asyncio`` task cancellation still works as usual; the token exists so
that a caller can abort one publish or dispatch without cancelling the
task that runs it, and so behaviors can observe the request.
"""

from __future__ import annotations

import asyncio

from .errors import OperationCancelledError


class CancellationToken:
    """Cancellation signal backed by an ``asyncio.Event``.

    Tokens are one-shot: once cancelled they stay cancelled.
    """

    __slots__ = ("_event", "_reason")

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason = ""

    @classmethod
    def none(cls) -> CancellationToken:
        """A fresh token nobody will cancel."""
        return cls()

    def cancel(self, reason: str = "") -> None:
        self._reason = reason
        self._event.set()

    @property
    def is_cancellation_requested(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def raise_if_cancellation_requested(self) -> None:
        """Raise ``OperationCancelledError`` if the token was cancelled."""
        if self._event.is_set():
            raise OperationCancelledError(self._reason or "Operation was cancelled")

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()

    def __repr__(self) -> str:
        state = "cancelled" if self.is_cancellation_requested else "active"
        return f"CancellationToken({state})"
