"""Exception hierarchy for the remote page loader.

Only :class:`RequestCancelledError` is absorbed by the loader.  Every other
error rejects the caller's future and is passed to the ``on_error`` hook.
"""

from __future__ import annotations

from typing import Optional


class LoaderError(Exception):
    """Base class for all loader errors."""

    pass


class RequestCancelledError(LoaderError):
    """Raised when an in-flight request was superseded or torn down."""

    pass


class TransportError(LoaderError):
    """Raised on a non-success HTTP status or an underlying network failure."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class MappingError(LoaderError):
    """Raised when ``map_response`` fails or returns a malformed page."""

    pass
