"""Logos configuration loading and validation.

Reads ``logos.toml``, resolves ``${VAR}`` references from the environment,
and returns a validated :class:`LogosConfig` dataclass. A missing file yields
the defaults so the API can start against a bare database.
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("logos.toml")
CONFIG_PATH_ENV = "LOGOS_CONFIG"

DEFAULT_SUMMARIZER_MODEL = "gemini-2.0-flash"

# Pattern matching ${VAR_NAME}: supports alphanumeric + underscore variable names.
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_LOG_FORMATS = ("text", "json")


class ConfigError(Exception):
    """Raised when configuration is missing, malformed, or invalid."""


@dataclass
class LoggingConfig:
    """Logging configuration from [logos.logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"
    log_root: str | None = None


@dataclass
class TimelineConfig:
    """Timeline aggregation limits from the [timeline] section.

    ``fetch_limit`` is the per-source batch size used by the merge; it is
    independent of the page size a caller asks for.
    """

    fetch_limit: int = 100
    default_page_size: int = 20
    max_page_size: int = 200
    stats_limit: int = 1000
    recent_days: int = 30
    top_participants: int = 5


@dataclass
class GeocodingConfig:
    """Map provider credentials from the [geocoding] section."""

    api_key: str | None = None


@dataclass
class SummarizerConfig:
    """Generative summarization endpoint from the [summarizer] section."""

    api_key: str | None = None
    model: str = DEFAULT_SUMMARIZER_MODEL


@dataclass
class SyncConfig:
    """Chat/meeting platform sync endpoint from the [sync] section."""

    base_url: str | None = None
    api_key: str | None = None
    enabled: bool = True


@dataclass
class LogosConfig:
    """Parsed and validated Logos configuration."""

    name: str = "logos"
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    timeline: TimelineConfig = field(default_factory=TimelineConfig)
    geocoding: GeocodingConfig = field(default_factory=GeocodingConfig)
    summarizer: SummarizerConfig = field(default_factory=SummarizerConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Walks dicts, lists, and strings.  Non-string leaf values (int, bool,
    float, None) are returned unchanged.

    Raises
    ------
    ConfigError
        If a referenced environment variable is not set.
    """
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    if isinstance(value, str):
        return _resolve_string(value)

    return value


def _resolve_string(s: str) -> str:
    """Replace all ``${VAR_NAME}`` occurrences in *s* with env var values.

    Collects all missing variable names and reports them in a single error.
    """
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            missing.append(var_name)
            return match.group(0)
        return env_value

    result = _ENV_VAR_PATTERN.sub(_replace, s)

    if missing:
        vars_str = ", ".join(missing)
        raise ConfigError(
            f"Unresolved environment variable(s) in config value: {vars_str} (original: {s!r})"
        )

    return result


def _section(data: dict[str, Any], path: str) -> dict[str, Any]:
    """Return the table at dotted *path*, ``{}`` when absent."""
    node: Any = data
    for part in path.split("."):
        if not isinstance(node, dict):
            raise ConfigError(f"[{path}] must be a TOML table")
        node = node.get(part, {})
    if not isinstance(node, dict):
        raise ConfigError(f"[{path}] must be a TOML table")
    return node


def _positive_int(section: dict[str, Any], key: str, default: int, path: str) -> int:
    raw = section.get(key, default)
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ConfigError(f"{path}.{key} must be an integer, got {raw!r}")
    if raw <= 0:
        raise ConfigError(f"Invalid {path}.{key}: {raw!r}. Must be a positive integer.")
    return raw


def _optional_str(section: dict[str, Any], key: str, path: str) -> str | None:
    raw = section.get(key)
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ConfigError(f"{path}.{key} must be a string when set")
    return raw.strip() or None


def _parse_logging(data: dict[str, Any]) -> LoggingConfig:
    section = _section(data, "logos.logging")
    level = str(section.get("level", "INFO")).upper()
    fmt = str(section.get("format", "text")).lower()
    if fmt not in _LOG_FORMATS:
        raise ConfigError(f"Invalid logos.logging.format: {fmt!r}. Expected 'text' or 'json'.")
    return LoggingConfig(
        level=level,
        format=fmt,
        log_root=_optional_str(section, "log_root", "logos.logging"),
    )


def _parse_timeline(data: dict[str, Any]) -> TimelineConfig:
    section = _section(data, "timeline")
    defaults = TimelineConfig()
    cfg = TimelineConfig(
        fetch_limit=_positive_int(section, "fetch_limit", defaults.fetch_limit, "timeline"),
        default_page_size=_positive_int(
            section, "default_page_size", defaults.default_page_size, "timeline"
        ),
        max_page_size=_positive_int(section, "max_page_size", defaults.max_page_size, "timeline"),
        stats_limit=_positive_int(section, "stats_limit", defaults.stats_limit, "timeline"),
        recent_days=_positive_int(section, "recent_days", defaults.recent_days, "timeline"),
        top_participants=_positive_int(
            section, "top_participants", defaults.top_participants, "timeline"
        ),
    )
    if cfg.default_page_size > cfg.max_page_size:
        raise ConfigError(
            f"timeline.default_page_size ({cfg.default_page_size}) exceeds "
            f"timeline.max_page_size ({cfg.max_page_size})"
        )
    return cfg


def _parse_sync(data: dict[str, Any]) -> SyncConfig:
    section = _section(data, "sync")
    enabled = section.get("enabled", True)
    if not isinstance(enabled, bool):
        raise ConfigError("sync.enabled must be a boolean")
    base_url = _optional_str(section, "base_url", "sync")
    return SyncConfig(
        base_url=base_url.rstrip("/") if base_url else None,
        api_key=_optional_str(section, "api_key", "sync"),
        enabled=enabled,
    )


def parse_config(data: dict[str, Any]) -> LogosConfig:
    """Validate an already-parsed TOML document into a :class:`LogosConfig`."""
    data = resolve_env_vars(data)

    logos_section = _section(data, "logos")
    name = logos_section.get("name", "logos")
    if not isinstance(name, str) or not name.strip():
        raise ConfigError("logos.name must be a non-empty string")

    summarizer_section = _section(data, "summarizer")
    model = _optional_str(summarizer_section, "model", "summarizer") or DEFAULT_SUMMARIZER_MODEL

    return LogosConfig(
        name=name.strip(),
        logging=_parse_logging(data),
        timeline=_parse_timeline(data),
        geocoding=GeocodingConfig(
            api_key=_optional_str(_section(data, "geocoding"), "api_key", "geocoding"),
        ),
        summarizer=SummarizerConfig(
            api_key=_optional_str(summarizer_section, "api_key", "summarizer"),
            model=model,
        ),
        sync=_parse_sync(data),
    )


def load_config(path: Path | None = None) -> LogosConfig:
    """Load and validate ``logos.toml``.

    Parameters
    ----------
    path:
        Explicit config file. Defaults to ``$LOGOS_CONFIG`` or ``./logos.toml``.

    Returns
    -------
    LogosConfig
        Fully parsed configuration; defaults when the file does not exist
        and no explicit path was given.

    Raises
    ------
    ConfigError
        If an explicit file is missing, contains invalid TOML, or holds
        invalid values.
    """
    explicit = path is not None or CONFIG_PATH_ENV in os.environ
    toml_path = path or Path(os.environ.get(CONFIG_PATH_ENV, str(DEFAULT_CONFIG_PATH)))

    if not toml_path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {toml_path}")
        return LogosConfig()

    try:
        data = tomllib.loads(toml_path.read_bytes().decode())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {toml_path}: {exc}") from exc

    return parse_config(data)
