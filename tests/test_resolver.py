"""Tests for URL resolution and response normalization."""

import asyncio

import httpx
import pytest

from pageloader.core.coordinator import CancellationToken
from pageloader.core.data_models import PageResult
from pageloader.core.errors import MappingError, RequestCancelledError, TransportError
from pageloader.core.http_client import AsyncHTTPClient
from pageloader.core.resolver import ResponseResolver, make_key_mapper

TEMPLATE = "https://api.example.com/items?q={query}&page={page}&pageSize={pageSize}"


def identity(raw):
    return raw


def make_resolver(url=TEMPLATE, handler=None, map_response=identity, page_size=25):
    client = None
    if handler is not None:
        client = AsyncHTTPClient(transport=httpx.MockTransport(handler))
    return ResponseResolver(url=url, page_size=page_size, map_response=map_response, http_client=client)


class TestBuildUrl:
    """Tests for template substitution."""

    def test_substitutes_all_tokens(self):
        """Test the documented example."""
        resolver = make_resolver()
        url = resolver.build_url("my query", 2)
        assert "q=my%20query" in url
        assert "page=2" in url
        assert "pageSize=25" in url

    def test_query_is_escaped_like_uri_component(self):
        """Test escaping of reserved characters."""
        resolver = make_resolver(url="/search?q={query}")
        assert resolver.build_url("a&b=c/d", 1) == "/search?q=a%26b%3Dc%2Fd"
        assert resolver.build_url("café", 1) == "/search?q=caf%C3%A9"
        assert resolver.build_url("it's (ok)!*~", 1) == "/search?q=it's%20(ok)!*~"

    def test_only_first_occurrence_is_replaced(self):
        """Test single-occurrence substitution."""
        resolver = make_resolver(url="/{query}/{page}?again={query}&p={page}")
        assert resolver.build_url("x", 3) == "/x/3?again={query}&p={page}"

    def test_braces_in_query_are_not_re_expanded(self):
        """Test that a query containing a token is escaped first."""
        resolver = make_resolver(url="/s?q={query}&page={page}")
        assert resolver.build_url("{page}", 4) == "/s?q=%7Bpage%7D&page=4"

    def test_build_url_requires_template(self):
        """Test that function mode has no URL to build."""
        resolver = make_resolver(url=lambda q, p, s: {})
        with pytest.raises(TypeError):
            resolver.build_url("x", 1)

    def test_rejects_invalid_url_target(self):
        """Test constructor validation."""
        with pytest.raises(TypeError):
            ResponseResolver(url=42, page_size=25, map_response=identity)


class TestResolveTemplateMode:
    """Tests for template-mode resolution."""

    @pytest.mark.asyncio
    async def test_returns_parsed_json(self):
        """Test that the JSON body is the raw payload."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"items": [1], "page": 2, "totalPages": 3})

        resolver = make_resolver(handler=handler)
        raw = await resolver.resolve("my query", 2, CancellationToken())

        assert raw == {"items": [1], "page": 2, "totalPages": 3}
        assert seen[0].url.params["q"] == "my query"
        assert seen[0].url.params["pageSize"] == "25"

    @pytest.mark.asyncio
    async def test_invalid_json_is_transport_error(self):
        """Test an undecodable body."""

        def handler(request):
            return httpx.Response(200, text="<html>oops</html>")

        resolver = make_resolver(handler=handler)
        with pytest.raises(TransportError, match="Invalid JSON"):
            await resolver.resolve("q", 1, CancellationToken())

    @pytest.mark.asyncio
    async def test_cancelled_token(self):
        """Test that a cancelled token stops the request."""

        def handler(request):
            return httpx.Response(200, json={})

        token = CancellationToken()
        token.cancel()
        resolver = make_resolver(handler=handler)
        with pytest.raises(RequestCancelledError):
            await resolver.resolve("q", 1, token)


class TestResolveFunctionMode:
    """Tests for function-mode resolution."""

    @pytest.mark.asyncio
    async def test_async_function_receives_arguments(self):
        """Test the call signature."""
        calls = []

        async def fetch_items(query, page, page_size):
            calls.append((query, page, page_size))
            return {"items": [query], "page": page, "totalPages": 1}

        resolver = make_resolver(url=fetch_items)
        raw = await resolver.resolve("test", 3, CancellationToken())

        assert calls == [("test", 3, 25)]
        assert raw == {"items": ["test"], "page": 3, "totalPages": 1}

    @pytest.mark.asyncio
    async def test_sync_function(self):
        """Test that plain functions are accepted."""
        resolver = make_resolver(url=lambda q, p, s: {"items": [], "page": p, "totalPages": 0})
        raw = await resolver.resolve("q", 1, CancellationToken())
        assert raw["page"] == 1

    @pytest.mark.asyncio
    async def test_response_object_is_parsed(self):
        """Test that an httpx.Response result is decoded as JSON."""

        async def fetch_items(query, page, page_size):
            return httpx.Response(200, json={"items": [{"value": "test"}], "page": 1, "totalPages": 5})

        resolver = make_resolver(url=fetch_items)
        raw = await resolver.resolve("test", 1, CancellationToken())
        assert raw["totalPages"] == 5

    @pytest.mark.asyncio
    async def test_function_error_is_transport_error(self):
        """Test that resolver failures are transport failures."""

        async def fetch_items(query, page, page_size):
            raise ConnectionError("backend down")

        resolver = make_resolver(url=fetch_items)
        with pytest.raises(TransportError, match="backend down"):
            await resolver.resolve("q", 1, CancellationToken())

    @pytest.mark.asyncio
    async def test_function_is_cancellable(self):
        """Test that the token aborts a slow resolver function."""
        aborted = []

        async def fetch_items(query, page, page_size):
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                aborted.append(query)
                raise

        token = CancellationToken()
        resolver = make_resolver(url=fetch_items)
        waiter = asyncio.ensure_future(resolver.resolve("slow", 1, token))
        await asyncio.sleep(0.01)
        token.cancel()

        with pytest.raises(RequestCancelledError):
            await waiter
        assert aborted == ["slow"]


class TestNormalize:
    """Tests for map_response handling."""

    @pytest.mark.asyncio
    async def test_mapping_with_camel_case_total(self):
        """Test the original response shape."""
        resolver = make_resolver()
        result = await resolver.normalize({"items": [1, 2], "page": 1, "totalPages": 4})
        assert result == PageResult(items=[1, 2], page=1, total_pages=4)

    @pytest.mark.asyncio
    async def test_mapping_with_snake_case_total(self):
        """Test the Python-style key."""
        resolver = make_resolver()
        result = await resolver.normalize({"items": [], "page": 2, "total_pages": 2})
        assert result.total_pages == 2

    @pytest.mark.asyncio
    async def test_page_result_passthrough(self):
        """Test that a PageResult is returned unchanged."""
        expected = PageResult(items=["a"], page=1, total_pages=1)
        resolver = make_resolver(map_response=lambda raw: expected)
        assert await resolver.normalize(object()) is expected

    @pytest.mark.asyncio
    async def test_custom_sync_mapper(self):
        """Test a mapper reshaping a backend payload."""

        def mapper(raw):
            return {"items": [raw["data"]], "page": 1, "totalPages": 1}

        resolver = make_resolver(map_response=mapper)
        result = await resolver.normalize({"data": {"value": "test", "label": "Test"}})
        assert result.items == [{"value": "test", "label": "Test"}]

    @pytest.mark.asyncio
    async def test_async_mapper(self):
        """Test an async mapper."""

        async def mapper(raw):
            await asyncio.sleep(0)
            return {"items": raw["results"], "page": raw["p"], "totalPages": raw["n"]}

        resolver = make_resolver(map_response=mapper)
        result = await resolver.normalize({"results": ["x"], "p": 3, "n": 9}, CancellationToken())
        assert result == PageResult(items=["x"], page=3, total_pages=9)

    @pytest.mark.asyncio
    async def test_mapper_error_is_mapping_error(self):
        """Test that mapper exceptions become MappingError."""

        def mapper(raw):
            raise ValueError("bad payload")

        resolver = make_resolver(map_response=mapper)
        with pytest.raises(MappingError, match="bad payload") as exc_info:
            await resolver.normalize({})
        assert isinstance(exc_info.value.__cause__, ValueError)

    @pytest.mark.asyncio
    async def test_missing_key_is_mapping_error(self):
        """Test a result without a page count."""
        resolver = make_resolver()
        with pytest.raises(MappingError, match="missing key"):
            await resolver.normalize({"items": [], "page": 1})

    @pytest.mark.asyncio
    async def test_non_mapping_is_mapping_error(self):
        """Test a result of the wrong type."""
        resolver = make_resolver()
        with pytest.raises(MappingError, match="list"):
            await resolver.normalize([1, 2, 3])

    @pytest.mark.asyncio
    async def test_malformed_values_are_mapping_error(self):
        """Test values that cannot be coerced."""
        resolver = make_resolver()
        with pytest.raises(MappingError, match="malformed"):
            await resolver.normalize({"items": [], "page": "first", "totalPages": 1})


class TestMakeKeyMapper:
    """Tests for the key-path mapper factory."""

    def test_default_keys(self):
        """Test the default response shape."""
        mapper = make_key_mapper()
        result = mapper({"items": [1], "page": 2, "totalPages": 3})
        assert result == PageResult(items=[1], page=2, total_pages=3)

    def test_dotted_paths(self):
        """Test nested keys and list indexes."""
        mapper = make_key_mapper("data.results", "meta.0.page", "meta.0.pages")
        raw = {"data": {"results": ["a", "b"]}, "meta": [{"page": "4", "pages": "7"}]}
        assert mapper(raw) == PageResult(items=["a", "b"], page=4, total_pages=7)

    def test_without_total_pages(self):
        """Test that a missing total key reports a single page."""
        mapper = make_key_mapper(total_pages_key=None)
        assert mapper({"items": [], "page": 1}).total_pages == 1

    def test_missing_path_raises_key_error(self):
        """Test a path that does not exist."""
        mapper = make_key_mapper("data.results")
        with pytest.raises(KeyError):
            mapper({"data": {}})
