"""Response resolution and normalization.

Getting the bytes and shaping the bytes are kept apart: :meth:`resolve`
fetches a raw payload either from a URL template or a caller-supplied
function, and :meth:`normalize` runs the caller's ``map_response`` to turn it
into a :class:`PageResult`.  The loader therefore never needs to know a
backend's schema.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, Union
from urllib.parse import quote

import httpx

from pageloader.core.coordinator import CancellationToken
from pageloader.core.data_models import PageResult
from pageloader.core.errors import LoaderError, MappingError, TransportError
from pageloader.core.http_client import AsyncHTTPClient

# Characters left unescaped in the query, matching encodeURIComponent
QUERY_SAFE_CHARS = "!*'()"

UrlResolver = Callable[[str, int, int], Union[Any, Awaitable[Any]]]
UrlTarget = Union[str, UrlResolver]
MapResponse = Callable[[Any], Union[PageResult, Mapping[str, Any], Awaitable[Any]]]


class ResponseResolver:
    """Executes the network operation and normalizes its payload."""

    def __init__(
        self,
        url: UrlTarget,
        page_size: int,
        map_response: MapResponse,
        http_client: Optional[AsyncHTTPClient] = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            url: URL template with ``{query}``, ``{page}`` and ``{pageSize}``
                tokens, or a function called as ``url(query, page, page_size)``
            page_size: Items requested per page
            map_response: Turns the raw payload into ``{items, page, totalPages}``
            http_client: Client used in template mode (created on demand)
        """
        if not isinstance(url, str) and not callable(url):
            raise TypeError("url must be a string template or a callable")
        self.url = url
        self.page_size = page_size
        self.map_response = map_response
        self._http_client = http_client
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def is_template(self) -> bool:
        return isinstance(self.url, str)

    @property
    def http_client(self) -> AsyncHTTPClient:
        """Lazy-load the HTTP client."""
        if self._http_client is None:
            self._http_client = AsyncHTTPClient()
        return self._http_client

    def build_url(self, query: str, page: int) -> str:
        """Substitute the first occurrence of each placeholder token."""
        if not isinstance(self.url, str):
            raise TypeError("build_url requires a string URL template")
        return (
            self.url.replace("{query}", quote(query, safe=QUERY_SAFE_CHARS), 1)
            .replace("{page}", str(page), 1)
            .replace("{pageSize}", str(self.page_size), 1)
        )

    async def resolve(self, query: str, page: int, token: CancellationToken) -> Any:
        """Fetch the raw payload for a page.

        Raises:
            TransportError: On network failure, bad status or undecodable body
            RequestCancelledError: If ``token`` is cancelled meanwhile
        """
        if self.is_template:
            url = self.build_url(query, page)
            response = await self.http_client.get(url, token=token)
            return self._parse_json(response, url)

        self.logger.debug(
            "Calling resolver %s for %r page %d",
            getattr(self.url, "__name__", repr(self.url)),
            query,
            page,
        )
        try:
            result = self.url(query, page, self.page_size)
            if inspect.isawaitable(result):
                result = await token.guard(result)
        except LoaderError:
            raise
        except Exception as exc:
            raise TransportError(str(exc) or exc.__class__.__name__) from exc

        if isinstance(result, httpx.Response):
            return self._parse_json(result)
        return result

    def _parse_json(self, response: httpx.Response, url: Optional[str] = None) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(
                f"Invalid JSON in response: {exc}",
                status_code=response.status_code,
                url=url,
            ) from exc

    async def normalize(self, raw: Any, token: Optional[CancellationToken] = None) -> PageResult:
        """Run ``map_response`` on a raw payload.

        Raises:
            MappingError: If the mapper raises or returns a malformed page
            RequestCancelledError: If ``token`` is cancelled while mapping
        """
        try:
            mapped = self.map_response(raw)
            if inspect.isawaitable(mapped):
                mapped = await (token.guard(mapped) if token is not None else mapped)
        except LoaderError:
            raise
        except Exception as exc:
            raise MappingError(str(exc) or exc.__class__.__name__) from exc

        if isinstance(mapped, PageResult):
            return mapped
        if not isinstance(mapped, Mapping):
            raise MappingError(
                f"map_response must return a mapping or PageResult, got {type(mapped).__name__}"
            )
        try:
            return PageResult.from_mapping(mapped)
        except KeyError as exc:
            raise MappingError(f"map_response result is missing key {exc}") from exc
        except (TypeError, ValueError) as exc:
            raise MappingError(f"map_response result is malformed: {exc}") from exc


def _lookup(data: Any, path: str) -> Any:
    value = data
    for part in path.split("."):
        if isinstance(value, Mapping) and part in value:
            value = value[part]
        elif isinstance(value, list) and part.isdigit():
            value = value[int(part)]
        else:
            raise KeyError(path)
    return value


def make_key_mapper(
    items_key: str = "items",
    page_key: str = "page",
    total_pages_key: Optional[str] = "totalPages",
) -> Callable[[Any], PageResult]:
    """Build a ``map_response`` function from dotted key paths.

    A ``None`` total key makes the mapper report a single page.

    Example:
        mapper = make_key_mapper("data.results", "meta.page", "meta.pages")
    """

    def mapper(raw: Any) -> PageResult:
        items = _lookup(raw, items_key)
        page = _lookup(raw, page_key)
        total_pages = _lookup(raw, total_pages_key) if total_pages_key else 1
        return PageResult(items=list(items), page=int(page), total_pages=int(total_pages))

    return mapper
