"""Cancellation tokens and the single-slot request coordinator.

A :class:`CancellationToken` is threaded into the network call: it runs the
awaited I/O as a task and cancels that task when the token is cancelled, so
the pending request is actually aborted rather than merely ignored.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from typing import Awaitable, Optional, Set, TypeVar

from pageloader.core.errors import RequestCancelledError

T = TypeVar("T")

_token_ids = itertools.count(1)


class CancellationToken:
    """Handle that aborts the awaitables it guards when cancelled."""

    def __init__(self) -> None:
        self.id = next(_token_ids)
        self._cancelled = False
        self._tasks: Set[asyncio.Future] = set()

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"<{self.__class__.__name__} #{self.id} {state}>"

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> bool:
        """Cancel the token and abort every guarded awaitable.

        Returns:
            True if the token was active before this call
        """
        if self._cancelled:
            return False
        self._cancelled = True
        for task in list(self._tasks):
            task.cancel()
        return True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise RequestCancelledError(f"Request {self.id} was cancelled")

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` so that :meth:`cancel` aborts it.

        Raises:
            RequestCancelledError: If the token is or becomes cancelled
        """
        if self._cancelled:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()

        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        try:
            return await task
        except asyncio.CancelledError:
            if self._cancelled:
                raise RequestCancelledError(f"Request {self.id} was cancelled") from None
            raise
        finally:
            self._tasks.discard(task)


class NullCancellationToken(CancellationToken):
    """Token handed out when cancellation is disabled.

    It never aborts the transport.  Cancelling it only marks it, so the
    loader can still drop a result that arrives after teardown.
    """

    def cancel(self) -> bool:
        if self._cancelled:
            return False
        self._cancelled = True
        return True

    async def guard(self, awaitable: Awaitable[T]) -> T:
        return await awaitable


class RequestCoordinator:
    """Owns at most one outstanding cancellable operation."""

    def __init__(self, abortable: bool = True) -> None:
        self.abortable = abortable
        self._active: Optional[CancellationToken] = None
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def active(self) -> Optional[CancellationToken]:
        return self._active

    def begin(self) -> CancellationToken:
        """Start a new operation, cancelling the previous one if abortable."""
        if not self.abortable:
            token: CancellationToken = NullCancellationToken()
            self._active = token
            return token

        self.cancel_if_active()
        token = CancellationToken()
        self._active = token
        self.logger.debug("Began request %r", token)
        return token

    def cancel_if_active(self) -> bool:
        """Cancel the active token, if any.

        Returns:
            True if an active token was cancelled
        """
        token = self._active
        self._active = None
        if token is None:
            return False
        cancelled = token.cancel()
        if cancelled:
            self.logger.debug("Cancelled request %r", token)
        return cancelled

    def release(self, token: CancellationToken) -> None:
        """Forget ``token`` once its operation has finished."""
        if self._active is token:
            self._active = None
