"""Core functionality for pageloader.

This package contains the loader and the components it is built from:
- cache: Bounded FIFO page cache
- debounce: Debounce gate for bursts of fetches
- coordinator: Cancellation tokens and the single-slot request coordinator
- resolver: URL template / function resolution and response normalization
- http_client: httpx wrapper used in template mode
- loader: The public RemoteLoader
- config: Loader options and file/environment configuration
- logging_setup: Logging helpers
"""

from .data_models import CachedPage, LoaderState, PageResult  # noqa: F401
from .errors import (  # noqa: F401
    LoaderError,
    MappingError,
    RequestCancelledError,
    TransportError,
)
from .cache import PageCache  # noqa: F401
from .debounce import DebounceGate  # noqa: F401
from .coordinator import (  # noqa: F401
    CancellationToken,
    NullCancellationToken,
    RequestCoordinator,
)
from .http_client import AsyncHTTPClient  # noqa: F401
from .resolver import ResponseResolver, make_key_mapper  # noqa: F401
from .config import Config, LoaderOptions, ValidationResult, get_config  # noqa: F401
from .logging_setup import configure_logging, log_performance  # noqa: F401
from .loader import RemoteLoader  # noqa: F401

__all__ = [
    # Models
    "CachedPage",
    "LoaderState",
    "PageResult",
    # Errors
    "LoaderError",
    "MappingError",
    "RequestCancelledError",
    "TransportError",
    # Components
    "PageCache",
    "DebounceGate",
    "CancellationToken",
    "NullCancellationToken",
    "RequestCoordinator",
    "AsyncHTTPClient",
    "ResponseResolver",
    "make_key_mapper",
    # Config
    "Config",
    "LoaderOptions",
    "ValidationResult",
    "get_config",
    # Logging
    "configure_logging",
    "log_performance",
    # Loader
    "RemoteLoader",
]
