"""
backoffice_config -- single public entrypoint for application configuration.

Responsibility:
    ``get_active_config()`` returns the resolved ``AppConfig`` (YAML file +
    environment overrides) and caches it for the process.
    ``init_engine_from_config()`` bridges the database section into the
    kernel's engine initialization.

Architecture position:
    Configuration sits above ``backoffice_kernel``; the kernel never imports
    from this package.
"""

from __future__ import annotations

import logging
import threading

from sqlalchemy.engine import Engine

from backoffice_config.loader import load_config
from backoffice_config.schema import AppConfig
from backoffice_kernel.db.engine import init_engine_from_url
from backoffice_kernel.logging_config import configure_logging, get_logger

__all__ = [
    "AppConfig",
    "get_active_config",
    "init_engine_from_config",
    "load_config",
    "reset_active_config",
]

_logger = get_logger("config")
_active: AppConfig | None = None
_lock = threading.Lock()


def get_active_config() -> AppConfig:
    """Load (once) and return the process-wide configuration."""
    global _active
    with _lock:
        if _active is None:
            _active = load_config()
            _logger.info(
                "config_loaded",
                extra={
                    "source_path": _active.source_path,
                    "dialect": _active.database.url.split(":", 1)[0],
                    "log_level": _active.logging.level,
                },
            )
        return _active


def reset_active_config() -> None:
    """Drop the cached configuration. FOR TESTING ONLY."""
    global _active
    with _lock:
        _active = None


def init_engine_from_config(config: AppConfig | None = None) -> Engine:
    """Configure logging and initialize the kernel engine from ``config``."""
    config = config or get_active_config()
    configure_logging(level=getattr(logging, config.logging.level.upper()))
    db = config.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        statement_timeout_ms=db.statement_timeout_ms,
    )
