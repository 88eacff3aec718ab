"""Remote paginated-data loader.

:class:`RemoteLoader` turns a rapid stream of search/page requests from a UI
into a controlled sequence of network calls.  A call to :meth:`fetch` goes
through the debounce gate, is answered from the page cache when possible, and
otherwise starts a cancellable request that supersedes any previous one.

Superseded fetches never settle: their futures stay pending forever rather
than resolving with stale data or raising.  Callers that await a fetch which
may be superseded should wrap it in a timeout or keep only the newest future.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Set

from pageloader.core.cache import PageCache
from pageloader.core.config import LoaderOptions
from pageloader.core.coordinator import CancellationToken, RequestCoordinator
from pageloader.core.data_models import LoaderState, PageResult
from pageloader.core.debounce import DebounceGate
from pageloader.core.errors import RequestCancelledError
from pageloader.core.http_client import AsyncHTTPClient
from pageloader.core.logging_setup import log_performance
from pageloader.core.resolver import ResponseResolver


class RemoteLoader:
    """Debounced, cancellable, caching page loader."""

    def __init__(
        self,
        options: LoaderOptions,
        http_client: Optional[AsyncHTTPClient] = None,
    ) -> None:
        """Initialize the loader.

        Args:
            options: Loader options (validated here)
            http_client: Client for template mode; one is created and owned
                by the loader when omitted

        Raises:
            ValueError: If the options are invalid
        """
        options.validate_and_raise()
        self.options = options
        self.logger = logging.getLogger(self.__class__.__name__)

        self._owns_http_client = http_client is None
        if http_client is None:
            http_client = AsyncHTTPClient(timeout=options.timeout, headers=options.headers)
        self._http_client = http_client

        self._cache = PageCache(max_pages=options.cache_pages)
        self._gate = DebounceGate(delay_ms=options.debounce)
        self._coordinator = RequestCoordinator(abortable=options.abortable)
        self._resolver = ResponseResolver(
            url=options.url,
            page_size=options.page_size,
            map_response=options.map_response,
            http_client=http_client,
        )

        self._current_query = ""
        self._current_page = options.initial_page
        self._total_pages = 1

        # Bumped by destroy() so late results of older requests are dropped
        self._generation = 0
        self._outstanding: Set[CancellationToken] = set()
        self._tasks: Set[asyncio.Task] = set()

    async def __aenter__(self) -> "RemoteLoader":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def fetch(self, query: str, page: int, immediate: bool = False) -> "asyncio.Future[PageResult]":
        """Request a page, debounced unless ``immediate`` is set.

        Must be called while an event loop is running.  The returned future
        resolves with a :class:`PageResult` on success or cache hit, raises
        the surfaced error on failure, and never settles if a newer fetch
        supersedes this one.

        Args:
            query: Search text
            page: Page number
            immediate: Skip the debounce delay

        Returns:
            Future for the page
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self._gate.schedule(lambda: self._execute(query, page, future), immediate=immediate)
        return future

    def _execute(self, query: str, page: int, future: asyncio.Future) -> None:
        cached = self._cache.get(query, page)
        if cached is not None:
            if not future.done():
                future.set_result(
                    PageResult(items=list(cached.items), page=cached.page, total_pages=self._total_pages)
                )
            return

        token = self._coordinator.begin()
        self._outstanding.add(token)
        task = asyncio.ensure_future(self._load(query, page, token, future, self._generation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _load(
        self,
        query: str,
        page: int,
        token: CancellationToken,
        future: asyncio.Future,
        generation: int,
    ) -> None:
        try:
            with log_performance(f"fetch {query!r} page {page}", self.logger, logging.DEBUG):
                raw = await self._resolver.resolve(query, page, token)
                result = await self._resolver.normalize(raw, token)
            # A result that raced past a newer request or a teardown is stale
            if generation != self._generation:
                raise RequestCancelledError(f"Request {token.id} outlived its loader state")
            token.raise_if_cancelled()
        except RequestCancelledError:
            self.logger.debug("Dropped superseded fetch for %r page %d", query, page)
            return
        except Exception as exc:
            if generation != self._generation or token.cancelled:
                self.logger.debug("Dropped failure of superseded fetch for %r page %d: %s", query, page, exc)
                return
            self._surface_error(exc, future)
            return
        finally:
            self._outstanding.discard(token)
            self._coordinator.release(token)

        self._current_query = query
        self._current_page = page
        self._total_pages = result.total_pages
        self._cache.put(query, page, result.items)

        if not future.done():
            future.set_result(result)

    def _surface_error(self, exc: Exception, future: asyncio.Future) -> None:
        self.logger.warning("Fetch failed: %s", exc)
        if self.options.on_error is not None:
            try:
                self.options.on_error(exc)
            except Exception:
                self.logger.exception("on_error hook raised")
        if not future.done():
            future.set_exception(exc)

    def has_cached_page(self, query: str, page: int) -> bool:
        """Check if a page is cached."""
        return self._cache.has(query, page)

    def get_state(self) -> LoaderState:
        """Snapshot of the last successfully completed network fetch."""
        return LoaderState(
            query=self._current_query,
            current_page=self._current_page,
            total_pages=self._total_pages,
            cached_pages=self._cache.pages_for(self._current_query),
        )

    def clear_cache(self) -> None:
        """Clear all cached pages."""
        self._cache.clear()

    @property
    def is_loading(self) -> bool:
        """True while a network operation that was not cancelled is outstanding."""
        return any(not token.cancelled for token in self._outstanding)

    @property
    def current_query(self) -> str:
        return self._current_query

    @property
    def current_page(self) -> int:
        return self._current_page

    @property
    def total_pages(self) -> int:
        return self._total_pages

    def get_stats(self) -> Dict[str, Any]:
        """Get cache and HTTP statistics."""
        return {
            "cache": self._cache.get_stats(),
            "http": self._http_client.stats,
            "loading": self.is_loading,
        }

    def destroy(self) -> None:
        """Disarm the timer, cancel the in-flight request and clear the cache.

        Pending futures are left unsettled.  The loader can be used again
        afterwards.
        """
        self._gate.cancel()
        self._coordinator.cancel_if_active()
        # Non-abortable requests keep running but no longer count as loading
        for token in list(self._outstanding):
            token.cancel()
        self._generation += 1
        self._cache.clear()
        self.logger.debug("Loader destroyed")

    async def aclose(self) -> None:
        """Destroy the loader, stop its requests and close the HTTP client it owns.

        Requests that ``destroy`` could not abort (``abortable=False``) are
        cancelled here so none outlives the client.
        """
        self.destroy()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if self._owns_http_client:
            await self._http_client.aclose()
