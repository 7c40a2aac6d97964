"""
Application configuration schema.

Frozen dataclasses parsed from YAML by ``backoffice_config.loader``.
Every field has a default, so an empty file (or no file) yields a
working local configuration backed by in-memory SQLite.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

DEFAULT_DATABASE_URL = "sqlite://"
DEFAULT_OFX_MAX_BYTES = 50 * 1024 * 1024
DEFAULT_BACKUP_LOG_LIMIT = 1000


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection and pool settings for ``init_engine_from_url``."""

    url: str = DEFAULT_DATABASE_URL
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 5
    pool_timeout: int = 30
    statement_timeout_ms: int = 30_000

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("database.url must not be empty")
        if self.pool_size < 1:
            raise ValueError("database.pool_size must be at least 1")
        if self.statement_timeout_ms <= 0:
            raise ValueError("database.statement_timeout_ms must be positive")


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"

    def __post_init__(self) -> None:
        if self.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"logging.level is not a valid level: {self.level!r}")


@dataclass(frozen=True)
class ReconciliationSettings:
    """OFX ingestion limits and the display-only pending-balance epsilon."""

    ofx_max_bytes: int = DEFAULT_OFX_MAX_BYTES
    pending_balance_epsilon: Decimal = Decimal("0.01")

    def __post_init__(self) -> None:
        if self.ofx_max_bytes <= 0:
            raise ValueError("reconciliation.ofx_max_bytes must be positive")
        if self.pending_balance_epsilon < 0:
            raise ValueError("reconciliation.pending_balance_epsilon cannot be negative")


@dataclass(frozen=True)
class BackupSettings:
    system_log_limit: int = DEFAULT_BACKUP_LOG_LIMIT

    def __post_init__(self) -> None:
        if self.system_log_limit < 0:
            raise ValueError("backup.system_log_limit cannot be negative")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration object returned by ``get_active_config()``."""

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    reconciliation: ReconciliationSettings = field(default_factory=ReconciliationSettings)
    backup: BackupSettings = field(default_factory=BackupSettings)
    source_path: str | None = None
