#!/usr/bin/env python3
"""Command-line interface for pageloader.

The CLI drives a :class:`RemoteLoader` from the terminal, which is handy for
checking a backend's URL template and response mapping before wiring it into
a UI.

Commands:
- fetch: Fetch one or more consecutive pages for a query
- validate: Validate configuration
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pageloader.core.config import Config, LoaderOptions, get_config
from pageloader.core.data_models import PageResult
from pageloader.core.errors import LoaderError
from pageloader.core.http_client import AsyncHTTPClient
from pageloader.core.loader import RemoteLoader
from pageloader.core.logging_setup import configure_logging
from pageloader.core.resolver import make_key_mapper


def parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pageloader",
        description="Remote paginated-data loader CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pageloader fetch "https://api.example.com/items?q={query}&page={page}&pageSize={pageSize}" shoes
  pageloader fetch URL shoes --page 2 --pages 3 --page-size 50 --json
  pageloader fetch URL shoes --items-key data.results --total-pages-key meta.pages
  pageloader validate --strict
        """,
    )
    parser.add_argument("--config", help="Path to a YAML or TOML config file")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="WARNING",
        help="Logging level (default: WARNING)",
    )
    parser.add_argument("--log-file", type=Path, help="Also write logs to this file (rotated)")
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Use JSON structured logging format",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    fetch_parser = subparsers.add_parser("fetch", help="Fetch pages for a query")
    fetch_parser.add_argument("url", help="URL template with {query}, {page} and {pageSize}")
    fetch_parser.add_argument("query", help="Search text")
    fetch_parser.add_argument("--page", type=int, help="First page (default: loader.initial_page)")
    fetch_parser.add_argument(
        "--pages", type=int, default=1, help="Number of consecutive pages to fetch (default: 1)"
    )
    fetch_parser.add_argument("--page-size", type=int, help="Items per page")
    fetch_parser.add_argument("--items-key", help="Dotted path to the item list")
    fetch_parser.add_argument("--page-key", help="Dotted path to the page number")
    fetch_parser.add_argument("--total-pages-key", help="Dotted path to the page count")
    fetch_parser.add_argument("--json", action="store_true", help="Output as JSON")

    validate_parser = subparsers.add_parser("validate", help="Validate configuration")
    validate_parser.add_argument(
        "--strict", action="store_true", help="Exit with error if validation fails"
    )

    return parser.parse_args(argv)


def build_options(args: argparse.Namespace, config: Config) -> LoaderOptions:
    """Combine config defaults with command-line overrides."""
    mapper = make_key_mapper(
        items_key=args.items_key or config.get("loader.items_key", "items"),
        page_key=args.page_key or config.get("loader.page_key", "page"),
        total_pages_key=args.total_pages_key or config.get("loader.total_pages_key", "totalPages"),
    )
    options = LoaderOptions.from_config(config, url=args.url, map_response=mapper)
    if args.page_size is not None:
        options.page_size = args.page_size
    return options


def _print_page(result: PageResult) -> None:
    print(f"Page {result.page}/{result.total_pages} ({len(result.items)} items)")
    for item in result.items:
        if isinstance(item, (dict, list)):
            print(f"  {json.dumps(item, default=str)}")
        else:
            print(f"  {item}")


async def handle_fetch(
    args: argparse.Namespace,
    config: Config,
    http_client: Optional[AsyncHTTPClient] = None,
) -> int:
    """Handle the fetch command."""
    logger = logging.getLogger(__name__)

    try:
        options = build_options(args, config)
        loader = RemoteLoader(options, http_client=http_client)
    except ValueError as e:
        print(f"Invalid options: {e}", file=sys.stderr)
        return 2

    results: List[PageResult] = []
    async with loader:
        page = args.page if args.page is not None else options.initial_page
        for _ in range(max(args.pages, 1)):
            try:
                result = await loader.fetch(args.query, page, immediate=True)
            except LoaderError as e:
                print(f"Error fetching page {page}: {e}", file=sys.stderr)
                return 1
            results.append(result)
            if page >= result.total_pages:
                break
            page += 1

        state = loader.get_state()
        logger.info("Fetched %d page(s) for %r", len(results), args.query)

    if args.json:
        output = {
            "query": args.query,
            "pages": [r.to_dict() for r in results],
            "state": state.to_dict(),
        }
        print(json.dumps(output, indent=2, default=str))
    else:
        for result in results:
            _print_page(result)

    return 0


async def handle_validate(args: argparse.Namespace, config: Config) -> int:
    """Handle the validate command."""
    result = config.validate()

    print(result)

    if args.strict and not result.is_valid:
        return 1

    return 0


async def main_async(args: argparse.Namespace) -> int:
    """Main async entry point.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    configure_logging(
        log_file=args.log_file,
        level=getattr(logging, args.log_level),
        use_json=args.json_logs,
    )
    config = get_config(args.config)

    if args.command == "fetch":
        return await handle_fetch(args, config)
    elif args.command == "validate":
        return await handle_validate(args, config)

    return 2


def main() -> None:
    args = parse_args(sys.argv[1:])
    try:
        exit_code = asyncio.run(main_async(args))
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nAborted by user")
        sys.exit(130)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
