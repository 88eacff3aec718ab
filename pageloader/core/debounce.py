"""Debounce gate for loader fetches.

Bursts of calls are coalesced so that only the last one in a quiet period
runs.  The gate owns at most one armed timer at a time.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional


class DebounceGate:
    """Delays a callback until no newer call arrived for ``delay_ms``."""

    def __init__(self, delay_ms: float = 300) -> None:
        """Initialize the gate.

        Args:
            delay_ms: Default quiet period in milliseconds; 0 disables the delay
        """
        self.delay_ms = delay_ms
        self._timer: Optional[asyncio.TimerHandle] = None
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def pending(self) -> bool:
        """Whether a timer is armed and has not fired yet."""
        return self._timer is not None

    def schedule(
        self,
        run: Callable[[], None],
        delay_ms: Optional[float] = None,
        immediate: bool = False,
    ) -> None:
        """Run ``run`` now or after the quiet period.

        Any previously armed timer is cancelled first, so an immediate call
        also supersedes a pending debounced one.

        Args:
            run: Callback to execute
            delay_ms: Override of the configured delay for this call
            immediate: Skip the timer and run synchronously
        """
        self.cancel()

        delay = self.delay_ms if delay_ms is None else delay_ms
        if immediate or delay == 0:
            run()
            return

        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay / 1000.0, self._fire, run)
        self.logger.debug("Debounce timer armed (%.0fms)", delay)

    def _fire(self, run: Callable[[], None]) -> None:
        self._timer = None
        run()

    def cancel(self) -> bool:
        """Disarm the pending timer.

        Returns:
            True if a timer was cancelled
        """
        if self._timer is None:
            return False
        self._timer.cancel()
        self._timer = None
        self.logger.debug("Debounce timer cancelled")
        return True
