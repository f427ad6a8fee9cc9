# src/pipeline/cancellation.py - v1
"""Cooperative cancellation token shared by every remote call of a run."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, TypeVar

from assessflow.core.errors import RemoteCallError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """A one-shot cancellation signal.

    Remote clients either poll ``is_cancelled`` or wrap their awaits in
    ``guard()``, which aborts the awaited call as soon as the token fires.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        """Fire the token. Later calls are no-ops."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self, phase: str | None = None) -> None:
        if self.is_cancelled:
            raise RemoteCallError(
                f"Analysis {self._reason or 'cancelled'}", phase=phase, cancelled=True
            )

    async def guard(self, awaitable: Awaitable[T], phase: str | None = None) -> T:
        """Await ``awaitable`` unless the token fires first.

        Raises:
            RemoteCallError: If the token fired before the call returned.
                The underlying call is cancelled.
        """
        if self.is_cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled(phase)
        call: asyncio.Future[Any] = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({call, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            call.cancel()
            raise
        finally:
            waiter.cancel()

        if call.done():
            return call.result()

        call.cancel()
        try:
            await call
        except asyncio.CancelledError:
            pass
        except Exception as exc:  # noqa: BLE001
            logger.debug("Call for %s raised while cancelling: %s", phase, exc)
        raise RemoteCallError(
            f"Analysis {self._reason or 'cancelled'}", phase=phase, cancelled=True
        )
