"""Tests for the command-line interface."""

import json

import httpx
import pytest

from pageloader import cli
from pageloader.core import config as config_module
from pageloader.core.config import Config
from pageloader.core.http_client import AsyncHTTPClient

TEMPLATE = "https://api.example.com/items?q={query}&page={page}&pageSize={pageSize}"


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config_module, "_global_config", None)
    yield tmp_path


def catalog_handler(total_pages=3, status_code=200):
    requests = []

    def handler(request):
        requests.append(request)
        if status_code != 200:
            return httpx.Response(status_code)
        page = int(request.url.params["page"])
        return httpx.Response(
            200,
            json={
                "items": [{"value": f"item-{page}"}],
                "page": page,
                "totalPages": total_pages,
            },
        )

    handler.requests = requests
    return handler


def mock_client(handler):
    return AsyncHTTPClient(transport=httpx.MockTransport(handler))


class TestParseArgs:
    """Tests for argument parsing."""

    def test_fetch_defaults(self):
        """Test the fetch command with only positionals."""
        args = cli.parse_args(["fetch", TEMPLATE, "shoes"])

        assert args.command == "fetch"
        assert args.url == TEMPLATE
        assert args.query == "shoes"
        assert args.page is None
        assert args.pages == 1
        assert args.json is False
        assert args.log_level == "WARNING"

    def test_fetch_options(self):
        """Test all fetch flags."""
        args = cli.parse_args(
            [
                "--log-level",
                "DEBUG",
                "--json-logs",
                "fetch",
                TEMPLATE,
                "shoes",
                "--page",
                "2",
                "--pages",
                "3",
                "--page-size",
                "50",
                "--items-key",
                "data.results",
                "--json",
            ]
        )

        assert args.log_level == "DEBUG"
        assert args.json_logs is True
        assert args.page == 2
        assert args.pages == 3
        assert args.page_size == 50
        assert args.items_key == "data.results"
        assert args.json is True

    def test_command_required(self):
        """Test that a subcommand must be given."""
        with pytest.raises(SystemExit):
            cli.parse_args([])


class TestBuildOptions:
    """Tests for combining config and flags."""

    def test_flags_override_config(self):
        """Test that page size and keys come from the command line."""
        args = cli.parse_args(
            ["fetch", TEMPLATE, "q", "--page-size", "5", "--items-key", "rows", "--total-pages-key", "pages"]
        )

        options = cli.build_options(args, Config())

        assert options.url == TEMPLATE
        assert options.page_size == 5
        result = options.map_response({"rows": [1, 2], "page": 1, "pages": 4})
        assert result.items == [1, 2]
        assert result.total_pages == 4


class TestHandleFetch:
    """Tests for the fetch command."""

    @pytest.mark.asyncio
    async def test_fetch_single_page(self, capsys):
        """Test printing one page."""
        handler = catalog_handler()
        args = cli.parse_args(["fetch", TEMPLATE, "shoes"])

        exit_code = await cli.handle_fetch(args, Config(), http_client=mock_client(handler))

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "Page 1/3 (1 items)" in out
        assert '{"value": "item-1"}' in out
        assert handler.requests[0].url.params["q"] == "shoes"

    @pytest.mark.asyncio
    async def test_fetch_stops_at_last_page(self, capsys):
        """Test that --pages does not run past total_pages."""
        handler = catalog_handler(total_pages=3)
        args = cli.parse_args(["fetch", TEMPLATE, "shoes", "--page", "2", "--pages", "5"])

        exit_code = await cli.handle_fetch(args, Config(), http_client=mock_client(handler))

        out = capsys.readouterr().out
        assert exit_code == 0
        assert [r.url.params["page"] for r in handler.requests] == ["2", "3"]
        assert "Page 3/3" in out

    @pytest.mark.asyncio
    async def test_fetch_json_output(self, capsys):
        """Test the JSON output format."""
        handler = catalog_handler(total_pages=2)
        args = cli.parse_args(["fetch", TEMPLATE, "shoes", "--pages", "2", "--json"])

        exit_code = await cli.handle_fetch(args, Config(), http_client=mock_client(handler))

        output = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert output["query"] == "shoes"
        assert [p["page"] for p in output["pages"]] == [1, 2]
        assert output["state"] == {
            "query": "shoes",
            "current_page": 2,
            "total_pages": 2,
            "cached_pages": [1, 2],
        }

    @pytest.mark.asyncio
    async def test_fetch_http_error(self, capsys):
        """Test that a server error exits with 1."""
        handler = catalog_handler(status_code=500)
        args = cli.parse_args(["fetch", TEMPLATE, "shoes"])

        exit_code = await cli.handle_fetch(args, Config(), http_client=mock_client(handler))

        assert exit_code == 1
        assert "Error fetching page 1" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_fetch_invalid_options(self, capsys):
        """Test that invalid options exit with 2."""
        args = cli.parse_args(["fetch", TEMPLATE, "shoes", "--page-size", "0"])

        exit_code = await cli.handle_fetch(args, Config())

        assert exit_code == 2
        assert "Invalid options" in capsys.readouterr().err


class TestHandleValidate:
    """Tests for the validate command."""

    @pytest.mark.asyncio
    async def test_validate_defaults(self, capsys):
        """Test that default configuration passes."""
        args = cli.parse_args(["validate", "--strict"])

        exit_code = await cli.handle_validate(args, Config())

        assert exit_code == 0
        assert "loader.url is not set" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_validate_strict_failure(self, capsys):
        """Test that --strict turns errors into exit code 1."""
        config = Config()
        config.set("logging.level", "LOUD")

        assert await cli.handle_validate(cli.parse_args(["validate", "--strict"]), config) == 1
        assert await cli.handle_validate(cli.parse_args(["validate"]), config) == 0
        assert "Invalid logging level" in capsys.readouterr().out
