"""
Database backup export (``backoffice_services.backup_service``).

Dumps every mapped table to one JSON document.

Guarantees:
    - Columns whose name contains ``password`` are replaced with
      ``REDACTED``; hashes never leave the database.
    - ``system_logs`` is capped at the most recent
      ``BackupSettings.system_log_limit`` rows (1000 by default).
    - Read-only: the export never writes to the session.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from sqlalchemy import Table, select
from sqlalchemy.orm import Session

from backoffice_config.schema import DEFAULT_BACKUP_LOG_LIMIT
from backoffice_kernel.db.base import Base
from backoffice_kernel.domain.clock import Clock, SystemClock
from backoffice_kernel.logging_config import get_logger
from backoffice_kernel.utils.hashing import json_default
from backoffice_modules._orm_registry import import_all_orm_models

logger = get_logger("services.backup")

REDACTED = "REDACTED"
SYSTEM_LOG_TABLE = "system_logs"


@dataclass(frozen=True)
class DatabaseBackup:
    exported_at: datetime
    tables: dict[str, list[dict[str, Any]]] = field(default_factory=dict)

    @property
    def counts(self) -> dict[str, int]:
        return {name: len(rows) for name, rows in self.tables.items()}

    def to_dict(self) -> dict[str, Any]:
        return {
            "exported_at": self.exported_at.isoformat(),
            "counts": self.counts,
            "tables": self.tables,
        }

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=json_default, ensure_ascii=False)


def _redact(row: dict[str, Any]) -> dict[str, Any]:
    return {
        key: (REDACTED if "password" in key.lower() and value is not None else value)
        for key, value in row.items()
    }


class BackupService:
    """Full JSON export of the database."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        system_log_limit: int = DEFAULT_BACKUP_LOG_LIMIT,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._system_log_limit = system_log_limit

    def _rows(self, table: Table) -> list[dict[str, Any]]:
        stmt = select(table)
        if table.name == SYSTEM_LOG_TABLE:
            stmt = stmt.order_by(table.c.created_at.desc()).limit(self._system_log_limit)
        elif "created_at" in table.c:
            stmt = stmt.order_by(table.c.created_at)
        return [_redact(dict(row)) for row in self._session.execute(stmt).mappings()]

    def export(self) -> DatabaseBackup:
        import_all_orm_models()
        tables = {table.name: self._rows(table) for table in Base.metadata.sorted_tables}
        backup = DatabaseBackup(exported_at=self._clock.now(), tables=tables)
        logger.info(
            "database_backup_exported",
            extra={"table_count": len(tables), "row_count": sum(backup.counts.values())},
        )
        return backup

    def export_to_file(self, path: Path) -> DatabaseBackup:
        backup = self.export()
        Path(path).write_text(backup.to_json(), encoding="utf-8")
        logger.info("database_backup_written", extra={"path": str(path)})
        return backup
