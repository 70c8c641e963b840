"""Cooperative cancellation shared across nested worker pools."""

from __future__ import annotations

import asyncio
from typing import Optional

from utils.exceptions import OperationCancelledError


class CancellationToken:
    """Signal observed at round, site and page boundaries.

    Cancelling never interrupts a running coroutine; holders check the token
    and unwind through their own ``finally`` blocks.
    """

    def __init__(self, parent: Optional["CancellationToken"] = None) -> None:
        self._event = asyncio.Event()
        self._parent = parent
        self.reason: Optional[str] = None

    @property
    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return bool(self._parent and self._parent.is_cancelled)

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self.is_cancelled:
            reason = self.reason or (self._parent.reason if self._parent else None)
            raise OperationCancelledError(reason=reason or "cancelled")

    async def wait(self) -> None:
        await self._event.wait()

    def child(self) -> "CancellationToken":
        return CancellationToken(parent=self)


def check_cancelled(token: Optional[CancellationToken]) -> None:
    """Raise when ``token`` is set; ``None`` means the caller cannot be cancelled."""
    if token is not None:
        token.raise_if_cancelled()
