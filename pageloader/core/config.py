"""Configuration management for pageloader.

Two layers live here:

- :class:`LoaderOptions` holds the options of a single :class:`RemoteLoader`
  (URL target, page size, debounce, cache size, hooks, ...).
- :class:`Config` loads defaults for those options from multiple sources:
  YAML/TOML configuration files, environment variables (.env) and built-in
  defaults.  Environment variables use the ``PAGELOADER_`` prefix, e.g.
  ``PAGELOADER_LOADER_PAGE_SIZE=50``.

Both validate into a :class:`ValidationResult`.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # type: ignore

import yaml
from dotenv import load_dotenv

from pageloader.core.resolver import MapResponse, UrlTarget, make_key_mapper

ENV_PREFIX = "PAGELOADER_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass
class ValidationResult:
    """Result of configuration validation."""

    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        """Add an error message."""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)

    def __str__(self) -> str:
        """Format validation result as string."""
        lines = []
        if self.errors:
            lines.append("Errors:")
            lines.extend(f"  - {e}" for e in self.errors)
        if self.warnings:
            lines.append("Warnings:")
            lines.extend(f"  - {w}" for w in self.warnings)
        if not lines:
            return "Configuration is valid."
        return "\n".join(lines)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class LoaderOptions:
    """Options for a :class:`~pageloader.core.loader.RemoteLoader`.

    Attributes
    ----------
    url: str or callable
        URL template containing ``{query}``, ``{page}`` and ``{pageSize}``, or
        a function ``url(query, page, page_size)`` returning the raw payload
        (or an ``httpx.Response``), optionally as an awaitable.
    map_response: callable
        Normalizes the raw payload into ``{items, page, totalPages}``; may be
        async.
    page_size: int
        Items requested per page.
    initial_page: int
        Seed for the loader's current page.
    debounce: float
        Quiet period in milliseconds; 0 runs every fetch immediately.
    cache_pages: int
        Maximum cached pages before FIFO eviction.
    auto_load_initial: bool
        Advisory flag for the UI; the loader ignores it.
    abortable: bool
        Cancel superseded in-flight requests.
    threshold: float
        Advisory scroll-sentinel threshold for the UI; the loader ignores it.
    on_error: callable, optional
        Called once with each surfaced (non-cancellation) error.
    timeout: float
        HTTP timeout in seconds for template mode.
    headers: dict
        Extra HTTP headers for template mode.
    """

    url: UrlTarget
    map_response: MapResponse
    page_size: int = 25
    initial_page: int = 1
    debounce: float = 300
    cache_pages: int = 10
    auto_load_initial: bool = True
    abortable: bool = True
    threshold: float = 0.01
    on_error: Optional[Callable[[Exception], Any]] = None
    timeout: float = 10.0
    headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_config(
        cls,
        config: "Config",
        url: Optional[UrlTarget] = None,
        map_response: Optional[MapResponse] = None,
        on_error: Optional[Callable[[Exception], Any]] = None,
    ) -> "LoaderOptions":
        """Build options from the ``loader`` and ``http`` config sections.

        Args:
            config: Loaded configuration
            url: URL target (defaults to ``loader.url``)
            map_response: Mapper (defaults to a key-path mapper built from
                ``loader.items_key``, ``loader.page_key`` and
                ``loader.total_pages_key``)
            on_error: Error hook
        """
        if map_response is None:
            map_response = make_key_mapper(
                items_key=config.get("loader.items_key", "items"),
                page_key=config.get("loader.page_key", "page"),
                total_pages_key=config.get("loader.total_pages_key", "totalPages"),
            )

        headers = dict(config.get_section("http").get("headers") or {})
        user_agent = config.get("http.user_agent", "")
        if user_agent:
            headers.setdefault("User-Agent", user_agent)

        return cls(
            url=url if url is not None else config.get("loader.url", ""),
            map_response=map_response,
            page_size=config.get_int("loader.page_size", 25),
            initial_page=config.get_int("loader.initial_page", 1),
            debounce=config.get_float("loader.debounce", 300),
            cache_pages=config.get_int("loader.cache_pages", 10),
            auto_load_initial=config.get_bool("loader.auto_load_initial", True),
            abortable=config.get_bool("loader.abortable", True),
            threshold=config.get_float("loader.threshold", 0.01),
            on_error=on_error,
            timeout=config.get_float("http.timeout_seconds", 10.0),
            headers=headers,
        )

    def validate(self) -> ValidationResult:
        """Validate the options.

        Returns:
            ValidationResult with errors and warnings
        """
        result = ValidationResult(is_valid=True)

        if isinstance(self.url, str):
            if not self.url:
                result.add_error("url must be a non-empty template or a callable")
            elif "{query}" not in self.url:
                result.add_warning("url template has no {query} placeholder")
        elif not callable(self.url):
            result.add_error("url must be a string template or a callable")

        if not callable(self.map_response):
            result.add_error("map_response must be callable")

        if not _is_int(self.page_size) or self.page_size < 1:
            result.add_error("page_size must be a positive integer")

        if not _is_int(self.initial_page) or self.initial_page < 0:
            result.add_error("initial_page must be a non-negative integer")

        if not _is_number(self.debounce) or self.debounce < 0:
            result.add_error("debounce must be a non-negative number of milliseconds")

        if not _is_int(self.cache_pages) or self.cache_pages < 0:
            result.add_error("cache_pages must be a non-negative integer")
        elif self.cache_pages == 0:
            result.add_warning("cache_pages=0 disables caching")

        if not _is_number(self.threshold) or not 0 <= self.threshold <= 1:
            result.add_error("threshold must be a number between 0 and 1")

        if self.on_error is not None and not callable(self.on_error):
            result.add_error("on_error must be callable")

        if not _is_number(self.timeout) or self.timeout <= 0:
            result.add_error("timeout must be a positive number")

        return result

    def validate_and_raise(self) -> None:
        """
        Validate options and raise exception if invalid.

        Raises:
            ValueError: If the options are invalid
        """
        result = self.validate()
        if not result.is_valid:
            raise ValueError(f"Invalid loader options:\n{result}")


class Config:
    """Configuration manager for pageloader."""

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            config_file: Path to YAML or TOML config file (optional)
        """
        self.logger = logging.getLogger(self.__class__.__name__)
        self._config: Dict[str, Any] = {}
        self._config_file = config_file

        # Load .env file if it exists
        env_path = Path(".env")
        if env_path.exists():
            load_dotenv(env_path)
            self.logger.info("Loaded environment variables from .env")

        if config_file:
            self._load_config_file(config_file)
        else:
            self._auto_load_config()

        self._load_defaults()

    def _load_config_file(self, config_file: str) -> None:
        """Load configuration from YAML or TOML file."""
        config_path = Path(config_file)

        if not config_path.exists():
            self.logger.warning("Config file not found: %s", config_file)
            return

        try:
            with open(config_path, "rb") as f:
                if config_file.endswith((".yaml", ".yml")):
                    self._config = yaml.safe_load(f) or {}
                    self.logger.info("Loaded YAML config from %s", config_file)
                elif config_file.endswith(".toml"):
                    self._config = tomllib.load(f)
                    self.logger.info("Loaded TOML config from %s", config_file)
                else:
                    self.logger.error("Unsupported config format: %s", config_file)
        except (OSError, yaml.YAMLError, tomllib.TOMLDecodeError) as e:
            self.logger.error("Failed to load config file %s: %s", config_file, e)

    def _auto_load_config(self) -> None:
        """Automatically find and load config file."""
        config_dir = Path("config")

        candidates = [
            config_dir / "pageloader.yaml",
            config_dir / "pageloader.yml",
            config_dir / "pageloader.toml",
            Path("pageloader.yaml"),
            Path("pageloader.yml"),
            Path("pageloader.toml"),
        ]

        for candidate in candidates:
            if candidate.exists():
                self._load_config_file(str(candidate))
                return

        self.logger.debug("No config file found, using defaults and environment variables")

    def _load_defaults(self) -> None:
        """Load default configuration values."""
        defaults = {
            "logging": {
                "level": "INFO",
                "file": "",
                "json": False,
            },
            "loader": {
                "url": "",
                "page_size": 25,
                "initial_page": 1,
                "debounce": 300,
                "cache_pages": 10,
                "auto_load_initial": True,
                "abortable": True,
                "threshold": 0.01,
                "items_key": "items",
                "page_key": "page",
                "total_pages_key": "totalPages",
            },
            "http": {
                "timeout_seconds": 10.0,
                "user_agent": "",
                "headers": {},
            },
        }

        # Merge defaults with loaded config (loaded config takes precedence)
        for key, value in defaults.items():
            if key not in self._config:
                self._config[key] = value
            elif isinstance(value, dict):
                self._config[key] = {**value, **(self._config.get(key) or {})}

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value.

        Supports dot notation for nested keys: "loader.page_size"

        Args:
            key: Configuration key (supports dot notation)
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        # Environment variables have the highest priority
        env_key = ENV_PREFIX + key.upper().replace(".", "_")
        env_value = os.getenv(env_key)
        if env_value is not None:
            return env_value

        keys = key.split(".")
        value = self._config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def get_int(self, key: str, default: int = 0) -> int:
        """Get a value coerced to ``int`` (environment values are strings)."""
        value = self.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValueError(f"{key} must be an integer, got {value!r}") from None

    def get_float(self, key: str, default: float = 0.0) -> float:
        """Get a value coerced to ``float``."""
        value = self.get(key, default)
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValueError(f"{key} must be a number, got {value!r}") from None

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Get a value coerced to ``bool``; accepts true/false, yes/no, 1/0, on/off."""
        value = self.get(key, default)
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
        raise ValueError(f"{key} must be a boolean, got {value!r}")

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value at runtime.

        Args:
            key: Configuration key (supports dot notation)
            value: Value to set
        """
        keys = key.split(".")
        config = self._config

        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value
        self.logger.debug("Set config %s = %r", key, value)

    def get_section(self, section: str) -> Dict[str, Any]:
        """
        Get entire configuration section.

        Args:
            section: Section name (e.g., "loader", "http")

        Returns:
            Dictionary with section configuration
        """
        return self._config.get(section, {})

    def to_dict(self) -> Dict[str, Any]:
        """
        Get all configuration as dictionary.

        Returns:
            Complete configuration dictionary
        """
        return self._config.copy()

    def reload(self, config_file: Optional[str] = None) -> None:
        """
        Reload configuration from file.

        Args:
            config_file: Path to config file (optional, uses original if not provided)
        """
        if config_file:
            self._config_file = config_file
        self._config = {}
        if self._config_file:
            self._load_config_file(self._config_file)
        else:
            self._auto_load_config()
        self._load_defaults()
        self.logger.info("Configuration reloaded")

    def validate(self) -> ValidationResult:
        """
        Validate the configuration.

        Checks:
        - Logging level is known
        - Loader values have the right types and ranges
        - HTTP timeout is positive

        Returns:
            ValidationResult with errors and warnings
        """
        result = ValidationResult(is_valid=True)

        log_level = str(self.get("logging.level", "INFO"))
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if log_level.upper() not in valid_levels:
            result.add_error(
                f"Invalid logging level '{log_level}'. Must be one of: {', '.join(valid_levels)}"
            )

        log_file = self.get("logging.file", "")
        if log_file:
            log_dir = Path(log_file).parent
            if not log_dir.exists():
                result.add_warning(f"Log directory does not exist: {log_dir}")

        url_configured = bool(self.get("loader.url", ""))
        if not url_configured:
            result.add_warning("loader.url is not set; a URL must be given at runtime")

        # Coercion errors are reported rather than raised
        try:
            options = LoaderOptions.from_config(self)
        except ValueError as e:
            result.add_error(str(e))
        else:
            option_result = options.validate()
            for error in option_result.errors:
                if not url_configured and error.startswith("url "):
                    continue
                result.add_error(f"loader: {error}")
            for warning in option_result.warnings:
                result.add_warning(f"loader: {warning}")

        for error in result.errors:
            self.logger.error("Config validation error: %s", error)
        for warning in result.warnings:
            self.logger.warning("Config validation warning: %s", warning)

        return result

    def validate_and_raise(self) -> None:
        """
        Validate configuration and raise exception if invalid.

        Raises:
            ValueError: If configuration is invalid
        """
        result = self.validate()
        if not result.is_valid:
            raise ValueError(f"Invalid configuration:\n{result}")


# Global configuration instance
_global_config: Optional[Config] = None


def get_config(config_file: Optional[str] = None) -> Config:
    """
    Get global configuration instance.

    Args:
        config_file: Path to config file (only used on first call)

    Returns:
        Config instance
    """
    global _global_config

    if _global_config is None:
        _global_config = Config(config_file)

    return _global_config


def reload_config(config_file: Optional[str] = None) -> None:
    """
    Reload global configuration.

    Args:
        config_file: Path to config file (optional)
    """
    global _global_config

    if _global_config is not None:
        _global_config.reload(config_file)
    else:
        _global_config = Config(config_file)
