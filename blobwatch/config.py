"""YAML configuration for blobwatch.

Example config::

    watch:
      poll_interval_seconds: 30
      max_polls: null
      max_consecutive_failures: 5
      handler: mypkg.jobs:on_blob
    containers:
      - s3://landing-bucket/incoming
      - uri: az://uploads
        options:
          connection_string_env: AZURE_STORAGE_CONNECTION_STRING
    logging:
      level: INFO
      format: human

String values may reference environment variables as ``${VAR}`` or
``${VAR:default}``.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from blobwatch.exceptions import ConfigValidationError
from blobwatch.storage import BlobContainer, get_container, list_backends, parse_uri

logger = logging.getLogger(__name__)

__all__ = [
    "ContainerConfig",
    "LoggingConfig",
    "WatchConfig",
    "substitute_env_vars",
    "load_config",
    "parse_config",
]

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")
_LOG_FORMATS = ("human", "json", "simple")


def substitute_env_vars(value: Any) -> Any:
    """Recursively expand ``${VAR}`` and ``${VAR:default}`` in config values.

    Raises:
        ValueError: If a referenced variable is unset and has no default
    """
    if isinstance(value, dict):
        return {key: substitute_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [substitute_env_vars(item) for item in value]
    if not isinstance(value, str):
        return value

    def _expand(match: re.Match) -> str:
        name, default = match.group(1), match.group(2)
        resolved = os.environ.get(name, default)
        if resolved is None:
            raise ValueError(
                f"Environment variable '{name}' is not set and no default provided"
            )
        return resolved

    return _ENV_VAR_PATTERN.sub(_expand, value)


@dataclass
class ContainerConfig:
    """One watched container and its backend options."""

    uri: str
    options: Dict[str, Any] = field(default_factory=dict)

    def build(self) -> BlobContainer:
        return get_container(self.uri, **self.options)


@dataclass
class LoggingConfig:
    """Unset fields fall back to the BLOBWATCH_LOG_* environment variables."""

    level: Optional[str] = None
    format: Optional[str] = None
    file: Optional[str] = None


@dataclass
class WatchConfig:
    """Validated blobwatch configuration."""

    containers: List[ContainerConfig] = field(default_factory=list)
    poll_interval_seconds: float = 30.0
    max_polls: Optional[int] = None
    max_consecutive_failures: int = 5
    handler: Optional[str] = None
    log: LoggingConfig = field(default_factory=LoggingConfig)

    def build_containers(self) -> List[BlobContainer]:
        return [container.build() for container in self.containers]


def _parse_container(entry: Any, index: int, config_path: Optional[str]) -> ContainerConfig:
    key = f"containers[{index}]"
    if isinstance(entry, str):
        uri, options = entry, {}
    elif isinstance(entry, dict):
        uri = entry.get("uri")
        options = entry.get("options") or {}
        if not isinstance(options, dict):
            raise ConfigValidationError("Container options must be a mapping", config_path, f"{key}.options")
    else:
        raise ConfigValidationError("Container entry must be a URI or a mapping", config_path, key)

    if not isinstance(uri, str) or not uri.strip():
        raise ConfigValidationError("Container URI is required", config_path, f"{key}.uri")

    scheme, _ = parse_uri(uri.strip())
    if scheme not in list_backends():
        raise ConfigValidationError(f"Unsupported container scheme '{scheme}'", config_path, f"{key}.uri")
    return ContainerConfig(uri=uri.strip(), options=options)


def _number(value: Any, key: str, config_path: Optional[str], *, minimum: float, integer: bool = False) -> Any:
    try:
        number = int(value) if integer else float(value)
    except (TypeError, ValueError):
        raise ConfigValidationError(f"{key} must be a number, got {value!r}", config_path, key)
    if number < minimum:
        raise ConfigValidationError(f"{key} must be >= {minimum}", config_path, key)
    return number


def parse_config(raw: Dict[str, Any], config_path: Optional[str] = None) -> WatchConfig:
    """Validate a raw config mapping into a :class:`WatchConfig`.

    Raises:
        ConfigValidationError: On missing or invalid values
    """
    if not isinstance(raw, dict):
        raise ConfigValidationError("Config must be a YAML dictionary/object", config_path)

    watch = raw.get("watch") or {}
    if not isinstance(watch, dict):
        raise ConfigValidationError("'watch' must be a mapping", config_path, "watch")

    containers_raw = raw.get("containers") or []
    if not isinstance(containers_raw, list):
        raise ConfigValidationError("'containers' must be a list", config_path, "containers")

    config = WatchConfig(
        containers=[_parse_container(entry, i, config_path) for i, entry in enumerate(containers_raw)],
        poll_interval_seconds=_number(
            watch.get("poll_interval_seconds", 30), "watch.poll_interval_seconds", config_path, minimum=0
        ),
        max_consecutive_failures=_number(
            watch.get("max_consecutive_failures", 5),
            "watch.max_consecutive_failures",
            config_path,
            minimum=1,
            integer=True,
        ),
        handler=watch.get("handler"),
    )
    if watch.get("max_polls") is not None:
        config.max_polls = _number(watch["max_polls"], "watch.max_polls", config_path, minimum=1, integer=True)

    log_raw = raw.get("logging") or {}
    if not isinstance(log_raw, dict):
        raise ConfigValidationError("'logging' must be a mapping", config_path, "logging")
    log_format = str(log_raw["format"]).lower() if log_raw.get("format") else None
    if log_format is not None and log_format not in _LOG_FORMATS:
        raise ConfigValidationError(
            f"logging.format must be one of {', '.join(_LOG_FORMATS)}", config_path, "logging.format"
        )
    config.log = LoggingConfig(
        level=str(log_raw["level"]).upper() if log_raw.get("level") else None,
        format=log_format,
        file=log_raw.get("file"),
    )
    return config


def load_config(path: str, *, enable_env_substitution: bool = True) -> WatchConfig:
    """Load and validate a YAML config file.

    Args:
        path: Path to config YAML file
        enable_env_substitution: Substitute ${VAR} and ${VAR:default} with environment variables

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigValidationError: If the YAML is malformed or fails validation
    """
    logger.info("Loading config from %s", path)

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with open(config_path, "r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML in config file: {exc}", str(path))

    if raw is None:
        raw = {}
    if enable_env_substitution:
        try:
            raw = substitute_env_vars(raw)
        except ValueError as exc:
            raise ConfigValidationError(str(exc), str(path))

    return parse_config(raw, str(path))
