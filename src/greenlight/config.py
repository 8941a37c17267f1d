"""Configuration loading and validation.

Reads ``greenlight.toml`` from a config directory, resolves ``${VAR}``
references from the environment, and returns a validated
:class:`GreenlightConfig`. Database settings missing from the file fall
back to ``DATABASE_URL`` / ``POSTGRES_*`` environment variables.
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from greenlight.data import DEFAULT_TIMEOUT_S
from greenlight.db import Database, db_params_from_env

CONFIG_FILENAME = "greenlight.toml"

# Pattern matching ${VAR_NAME} — alphanumeric + underscore variable names.
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class ConfigError(Exception):
    """Raised when configuration is missing, malformed, or invalid."""


@dataclass
class LoggingConfig:
    """Logging configuration from the [logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"
    log_root: str | None = None


@dataclass
class QueryConfig:
    """Store behaviour from the [query] section.

    ``timeout_s`` bounds every store operation, pool checkout included.
    """

    timeout_s: float = DEFAULT_TIMEOUT_S


@dataclass
class DatabaseConfig:
    """Connection settings from the [database] section."""

    name: str = "greenlight"
    host: str = "localhost"
    port: int = 5432
    user: str = "greenlight"
    password: str = "greenlight"
    ssl: str | None = None
    min_pool_size: int = 2
    max_pool_size: int = 10
    max_idle_time_s: float = 300.0

    def to_database(self) -> Database:
        return Database(
            db_name=self.name,
            host=self.host,
            port=self.port,
            user=self.user,
            password=self.password,
            ssl=self.ssl,
            min_pool_size=self.min_pool_size,
            max_pool_size=self.max_pool_size,
            max_idle_time_s=self.max_idle_time_s,
        )


@dataclass
class GreenlightConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Walks dicts, lists, and strings. Non-string leaves pass through unchanged.

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


def _positive_int(section: dict[str, Any], key: str, default: int, prefix: str) -> int:
    raw = section.get(key, default)
    if isinstance(raw, bool) or not isinstance(raw, int) or raw < 1:
        raise ConfigError(f"{prefix}.{key} must be a positive integer, got {raw!r}")
    return raw


def _positive_float(section: dict[str, Any], key: str, default: float, prefix: str) -> float:
    raw = section.get(key, default)
    if isinstance(raw, bool) or not isinstance(raw, int | float) or raw <= 0:
        raise ConfigError(f"{prefix}.{key} must be a positive number, got {raw!r}")
    return float(raw)


def _parse_database(section: dict[str, Any]) -> DatabaseConfig:
    env = db_params_from_env()
    min_pool_size = _positive_int(section, "min_pool_size", 2, "database")
    max_pool_size = _positive_int(section, "max_pool_size", 10, "database")
    if min_pool_size > max_pool_size:
        raise ConfigError("database.min_pool_size must not exceed database.max_pool_size")

    ssl = section.get("ssl", env["ssl"])
    if ssl is not None and not isinstance(ssl, str):
        raise ConfigError("database.ssl must be a string when set")

    return DatabaseConfig(
        name=str(section.get("name", env["database"])),
        host=str(section.get("host", env["host"])),
        port=_positive_int(section, "port", int(env["port"]), "database"),
        user=str(section.get("user", env["user"])),
        password=str(section.get("password", env["password"])),
        ssl=ssl,
        min_pool_size=min_pool_size,
        max_pool_size=max_pool_size,
        max_idle_time_s=_positive_float(section, "max_idle_time_s", 300.0, "database"),
    )


def _parse_logging(section: dict[str, Any]) -> LoggingConfig:
    level = str(section.get("level", "INFO")).upper()
    fmt = str(section.get("format", "text")).lower()
    if fmt not in ("text", "json"):
        raise ConfigError(f"Invalid logging.format: {fmt!r}. Expected 'text' or 'json'.")
    return LoggingConfig(level=level, format=fmt, log_root=section.get("log_root"))


def load_config(config_dir: Path | None = None) -> GreenlightConfig:
    """Load ``greenlight.toml`` from *config_dir*.

    When *config_dir* is None, defaults plus environment variables are used.

    Raises
    ------
    ConfigError
        If the file is missing, contains invalid TOML, or holds invalid values.
    """
    data: dict[str, Any] = {}
    if config_dir is not None:
        toml_path = Path(config_dir) / CONFIG_FILENAME
        if not toml_path.exists():
            raise ConfigError(f"Config file not found: {toml_path}")
        try:
            data = tomllib.loads(toml_path.read_bytes().decode())
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in {toml_path}: {exc}") from exc
        data = resolve_env_vars(data)

    for name in ("database", "query", "logging"):
        if not isinstance(data.get(name, {}), dict):
            raise ConfigError(f"[{name}] must be a table")

    return GreenlightConfig(
        database=_parse_database(data.get("database", {})),
        query=QueryConfig(
            timeout_s=_positive_float(
                data.get("query", {}), "timeout_s", DEFAULT_TIMEOUT_S, "query"
            ),
        ),
        logging=_parse_logging(data.get("logging", {})),
    )
