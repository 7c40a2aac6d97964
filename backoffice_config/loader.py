"""
Configuration loader (``backoffice_config.loader``).

Responsibility
--------------
Loads the YAML configuration file and parses it into the frozen
dataclasses of ``backoffice_config.schema``, then applies environment
overrides.  Runtime code obtains configuration through
``backoffice_config.get_active_config()``.

Resolution order (later wins)
-----------------------------
1. Dataclass defaults.
2. YAML file: explicit ``path`` argument, else ``$BACKOFFICE_CONFIG``.
3. Environment: ``DATABASE_URL``, ``BACKOFFICE_LOG_LEVEL``,
   ``BACKOFFICE_STATEMENT_TIMEOUT_MS``, ``BACKOFFICE_OFX_MAX_BYTES``.

Failure modes
-------------
* Missing YAML file (explicitly requested) -> ``FileNotFoundError``.
* Malformed YAML -> ``yaml.YAMLError`` propagates.
* Unknown section keys -> ``ValueError`` naming the key.
* Out-of-range values -> ``ValueError`` from ``__post_init__``.
"""

from __future__ import annotations

import os
from dataclasses import fields, replace
from decimal import Decimal
from pathlib import Path
from typing import Any, Mapping

import yaml

from backoffice_config.schema import (
    AppConfig,
    BackupSettings,
    DatabaseSettings,
    LoggingSettings,
    ReconciliationSettings,
)

CONFIG_PATH_ENV = "BACKOFFICE_CONFIG"

_SECTIONS = {
    "database": DatabaseSettings,
    "logging": LoggingSettings,
    "reconciliation": ReconciliationSettings,
    "backup": BackupSettings,
}

_DECIMAL_FIELDS = {"pending_balance_epsilon"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML file and return its contents as a dict (empty file -> {}).

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML value must be a mapping")
    return data


def _parse_section(name: str, cls: type, data: Mapping[str, Any] | None) -> Any:
    if not data:
        return cls()
    allowed = {f.name for f in fields(cls)}
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(f"Unknown key(s) in '{name}': {', '.join(sorted(unknown))}")
    kwargs = {}
    for key, value in data.items():
        if key in _DECIMAL_FIELDS:
            value = Decimal(str(value))
        kwargs[key] = value
    return cls(**kwargs)


def parse_config(data: Mapping[str, Any], source_path: str | None = None) -> AppConfig:
    """Build an ``AppConfig`` from a parsed YAML mapping."""
    unknown = set(data) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"Unknown configuration section(s): {', '.join(sorted(unknown))}")
    sections = {name: _parse_section(name, cls, data.get(name)) for name, cls in _SECTIONS.items()}
    return AppConfig(**sections, source_path=source_path)


def apply_env_overrides(config: AppConfig, environ: Mapping[str, str]) -> AppConfig:
    """Return ``config`` with environment overrides applied."""
    database = config.database
    if environ.get("DATABASE_URL"):
        database = replace(database, url=environ["DATABASE_URL"])
    if environ.get("BACKOFFICE_STATEMENT_TIMEOUT_MS"):
        database = replace(database, statement_timeout_ms=int(environ["BACKOFFICE_STATEMENT_TIMEOUT_MS"]))

    logging_settings = config.logging
    if environ.get("BACKOFFICE_LOG_LEVEL"):
        logging_settings = replace(logging_settings, level=environ["BACKOFFICE_LOG_LEVEL"])

    reconciliation = config.reconciliation
    if environ.get("BACKOFFICE_OFX_MAX_BYTES"):
        reconciliation = replace(reconciliation, ofx_max_bytes=int(environ["BACKOFFICE_OFX_MAX_BYTES"]))

    return replace(config, database=database, logging=logging_settings, reconciliation=reconciliation)


def load_config(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """
    Resolve the application configuration.

    Args:
        path: YAML file to load.  Defaults to ``$BACKOFFICE_CONFIG``; when
            neither is set, only defaults and environment overrides apply.
        environ: Environment mapping (defaults to ``os.environ``).
    """
    env = os.environ if environ is None else environ
    resolved = path or env.get(CONFIG_PATH_ENV)
    if resolved:
        config_path = Path(resolved)
        config = parse_config(load_yaml_file(config_path), source_path=str(config_path))
    else:
        config = AppConfig()
    return apply_env_overrides(config, env)
