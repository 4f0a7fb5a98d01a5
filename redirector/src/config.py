from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

DEFAULT_YAML_FILE = "paths.yml"
DEFAULT_JSON_FILE = "paths.json"
DEFAULT_DB_PATH = "url.db"
DEFAULT_NAMESPACE = "UrlShortener"
DEFAULT_GREETING = "Hello, world!"
DEFAULT_STATIC_PATHS: Mapping[str, str] = MappingProxyType(
    {
        "/urlshort-godoc": "https://godoc.org/github.com/gophercises/urlshort",
        "/yaml-godoc": "https://godoc.org/gopkg.in/yaml.v2",
    }
)


class ConfigError(RuntimeError):
    """Raised when the service settings are invalid."""


@dataclass(frozen=True)
class AppConfig:
    """Immutable service configuration resolved once at startup.

    Attributes:
        yaml_file:    YAML mapping source, loaded first.
        json_file:    JSON mapping source, loaded second (wins on collisions).
        db_path:      SQLite file backing the mapping store.
        namespace:    Store namespace holding every loaded mapping.
        host, port:   Listener address.
        greeting:     Body of the default response when nothing matches.
        static_paths: In-memory fallback consulted after the store.
    """

    yaml_file: str = DEFAULT_YAML_FILE
    json_file: str = DEFAULT_JSON_FILE
    db_path: str = DEFAULT_DB_PATH
    namespace: str = DEFAULT_NAMESPACE
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8080
    greeting: str = DEFAULT_GREETING
    static_paths: Mapping[str, str] = field(default_factory=lambda: DEFAULT_STATIC_PATHS)


def parse_int(
    name: str,
    raw: str | None,
    default: int,
    *,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int:
    if raw is None:
        value = default
    else:
        try:
            value = int(raw)
        except ValueError as exc:
            raise ConfigError(f"{name} must be an integer") from exc

    if minimum is not None and value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got: {value}")
    if maximum is not None and value > maximum:
        raise ConfigError(f"{name} must be <= {maximum}, got: {value}")
    return value


def load_config(
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> AppConfig:
    """Build the service config from the environment.

    Resolution order, per field:
    1. ``overrides`` (command-line flags); ``None`` values are ignored.
    2. Environment variables (``YAML_FILE``, ``JSON_FILE``, ``DB_PATH``,
       ``BUCKET_NAME``, ``HOST``, ``PORT``, ``MESSAGE``).
    3. Built-in defaults.

    Raises :class:`ConfigError` for a non-numeric or out-of-range port or an
    empty namespace.
    """
    values = env if env is not None else os.environ

    config = AppConfig(
        yaml_file=values.get("YAML_FILE") or DEFAULT_YAML_FILE,
        json_file=values.get("JSON_FILE") or DEFAULT_JSON_FILE,
        db_path=values.get("DB_PATH") or DEFAULT_DB_PATH,
        namespace=values.get("BUCKET_NAME", DEFAULT_NAMESPACE),
        host=values.get("HOST") or "0.0.0.0",  # noqa: S104
        port=parse_int("PORT", values.get("PORT"), 8080, minimum=1, maximum=65535),
        greeting=values.get("MESSAGE") or DEFAULT_GREETING,
    )

    if overrides:
        changes = {key: value for key, value in overrides.items() if value is not None}
        if "port" in changes:
            changes["port"] = parse_int(
                "--port", str(changes["port"]), 8080, minimum=1, maximum=65535
            )
        config = replace(config, **changes)

    if not config.namespace:
        raise ConfigError("BUCKET_NAME must not be empty")
    return config
