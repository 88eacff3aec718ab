"""Asynchronous HTTP client helper.

This module provides a wrapper around the `httpx` asynchronous client used by
the loader's template mode.  It centralises settings such as timeouts and
headers, turns failures into :class:`TransportError`, and lets a
cancellation token abort a request that is still in flight.  Having a single
client instance allows for connection pooling and reduces overhead.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import httpx

from pageloader.core.coordinator import CancellationToken
from pageloader.core.errors import TransportError


class AsyncHTTPClient:
    """A simple async HTTP client with cancellation support and request stats."""

    DEFAULT_USER_AGENT = "pageloader/0.1"

    def __init__(
        self,
        timeout: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the HTTP client.

        Parameters
        ----------
        timeout : float
            Request timeout in seconds.
        headers : dict, optional
            Extra headers sent with every request.
        transport : httpx.AsyncBaseTransport, optional
            Transport override, e.g. ``httpx.MockTransport`` in tests.
        """
        self._timeout = timeout
        self._headers = {"User-Agent": self.DEFAULT_USER_AGENT, **(headers or {})}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.logger = logging.getLogger(self.__class__.__name__)
        self._request_count = 0
        self._error_count = 0
        self._total_request_time = 0.0

    async def __aenter__(self) -> "AsyncHTTPClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    @property
    def is_open(self) -> bool:
        return self._client is not None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers=self._headers,
                follow_redirects=True,
                transport=self._transport,
            )
            self.logger.debug("HTTP client initialized (timeout=%.1fs)", self._timeout)
        return self._client

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None
        if self._request_count > 0:
            avg_time = self._total_request_time / self._request_count
            self.logger.debug(
                "HTTP client closed (requests=%d, avg_time=%.2fms)",
                self._request_count,
                avg_time * 1000,
            )

    async def get(
        self,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        token: Optional[CancellationToken] = None,
    ) -> httpx.Response:
        """Make a GET request.

        Parameters
        ----------
        url : str
            The URL to request.
        headers : dict, optional
            HTTP headers.
        token : CancellationToken, optional
            Aborts the request when cancelled.

        Returns
        -------
        httpx.Response
            The HTTP response, always with a success status.

        Raises
        ------
        TransportError
            On a non-success status or a network failure.
        RequestCancelledError
            If ``token`` was cancelled before the response arrived.
        """
        client = self._ensure_client()
        start_time = time.monotonic()
        self.logger.debug("GET %s", url[:100])

        request = client.get(url, headers=headers)
        try:
            if token is not None:
                response = await token.guard(request)
            else:
                response = await request
        except httpx.RequestError as exc:
            self._error_count += 1
            self.logger.warning("Request error on GET %s: %s", url[:100], exc)
            raise TransportError(str(exc) or exc.__class__.__name__, url=url) from exc

        elapsed = time.monotonic() - start_time
        self._request_count += 1
        self._total_request_time += elapsed
        self.logger.debug(
            "GET %s -> %d (%.2fms)",
            url[:100],
            response.status_code,
            elapsed * 1000,
        )

        if not response.is_success:
            self._error_count += 1
            raise TransportError(
                f"HTTP error! status: {response.status_code}",
                status_code=response.status_code,
                url=url,
            )

        return response

    @property
    def stats(self) -> Dict[str, Any]:
        """Get request statistics.

        Returns
        -------
        dict
            Statistics including request count and average time.
        """
        return {
            "request_count": self._request_count,
            "error_count": self._error_count,
            "total_time_ms": self._total_request_time * 1000,
            "avg_time_ms": (
                (self._total_request_time / self._request_count * 1000)
                if self._request_count > 0
                else 0
            ),
        }
