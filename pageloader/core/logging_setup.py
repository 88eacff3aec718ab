"""Logging helpers for pageloader.

The library only emits records; handlers are installed by the application
(the CLI calls :func:`configure_logging` once at startup).
"""

import json
import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Attributes every LogRecord has; anything else arrived through ``extra=``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    Values passed with ``logger.log(..., extra={...})`` become top-level keys.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


@contextmanager
def log_performance(
    operation: str,
    logger: Optional[logging.Logger] = None,
    level: int = logging.INFO,
) -> Iterator[None]:
    """Log how long the wrapped block took and whether it raised.

    Example:
        with log_performance("fetch 'shoes' page 2", self.logger, logging.DEBUG):
            raw = await resolver.resolve(...)
    """
    logger = logger or logging.getLogger()
    start = time.monotonic()
    success = False
    try:
        yield
        success = True
    finally:
        duration_ms = (time.monotonic() - start) * 1000
        logger.log(
            level,
            "%s completed in %.2fms (success=%s)",
            operation,
            duration_ms,
            success,
            extra={"operation": operation, "duration_ms": round(duration_ms, 2), "success": success},
        )


def configure_logging(
    log_file: Optional[Path] = None,
    level: int = logging.INFO,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    use_json: bool = False,
    console_output: bool = True,
) -> None:
    """Install console and/or rotating file handlers on the root logger.

    Does nothing when the root logger already has handlers.

    Args:
        log_file: Optional log file; its directory is created if missing
        level: Root logging level
        max_bytes: Size at which the log file is rotated
        backup_count: Rotated files to keep
        use_json: Emit :class:`JSONFormatter` output instead of plain text
        console_output: Also log to stderr
    """
    root = logging.getLogger()
    if root.handlers:
        return

    formatter = JSONFormatter() if use_json else logging.Formatter(TEXT_FORMAT, DATE_FORMAT)

    handlers: List[logging.Handler] = []
    if console_output:
        handlers.append(logging.StreamHandler())
    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count))

    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)
