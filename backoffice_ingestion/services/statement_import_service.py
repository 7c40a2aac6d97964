"""
Statement import service: size check -> parse -> deduplicate -> persist.

Wraps ``parse_ofx`` and ``ReconciliationService.record_import`` in one
transaction and stamps the batch id into the log context.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from uuid import UUID

from sqlalchemy.orm import Session

from backoffice_ingestion.adapters.ofx_adapter import parse_ofx
from backoffice_kernel.domain.clock import Clock, SystemClock
from backoffice_kernel.exceptions import FileTooLargeError
from backoffice_kernel.logging_config import LogContext, get_logger
from backoffice_kernel.services.audit_service import AuditTrail
from backoffice_modules.cash.config import ReconciliationConfig
from backoffice_modules.cash.models import ImportStats
from backoffice_modules.cash.orm import BankImportModel
from backoffice_modules.cash.service import ReconciliationService

logger = get_logger("ingestion.statement_import_service")


class StatementImportService:
    """Loads OFX statements into ``bank_imports`` / ``bank_transactions``."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditTrail | None = None,
        config: ReconciliationConfig | None = None,
        reconciliation: ReconciliationService | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._audit = audit or AuditTrail(clock=self._clock)
        self._config = config or ReconciliationConfig()
        self._reconciliation = reconciliation or ReconciliationService(
            session, clock=self._clock, audit=self._audit, config=self._config,
        )

    def import_file(self, path: Path, actor_id: UUID | None = None) -> tuple[BankImportModel, ImportStats]:
        path = Path(path)
        size = path.stat().st_size
        if size > self._config.max_upload_bytes:
            raise FileTooLargeError(size, self._config.max_upload_bytes)
        return self.import_bytes(path.read_bytes(), file_name=path.name, actor_id=actor_id)

    def import_bytes(
        self,
        data: bytes,
        file_name: str | None = None,
        actor_id: UUID | None = None,
    ) -> tuple[BankImportModel, ImportStats]:
        """
        Import one statement.

        Re-importing the same file is safe: every FITID already stored is
        skipped and counted in ``ImportStats.skipped``.

        Raises:
            FileTooLargeError: ``data`` is above the configured cap.
            OFXParseError: the document cannot be parsed.
        """
        if len(data) > self._config.max_upload_bytes:
            raise FileTooLargeError(len(data), self._config.max_upload_bytes)
        file_hash = hashlib.sha256(data).hexdigest()
        logger.info("statement_import_started", extra={"file_name": file_name, "size": len(data)})

        parsed = parse_ofx(data)
        try:
            bank_import, stats = self._reconciliation.record_import(parsed, file_name=file_name, file_hash=file_hash)
            with LogContext.bind(import_id=bank_import.id, actor_id=actor_id):
                bank_import.created_by_id = actor_id
                self._audit.record(
                    self._session,
                    "bank_statement_imported",
                    entity="bank_import",
                    entity_id=bank_import.id,
                    actor_id=actor_id,
                    description=(
                        f"{file_name or 'statement'}: {stats.imported} imported, "
                        f"{stats.skipped} skipped"
                    ),
                    details={
                        "total": stats.total,
                        "imported": stats.imported,
                        "skipped": stats.skipped,
                        "errors": stats.errors,
                        "invalid_dates": parsed.stats.invalid_dates,
                    },
                )
                self._session.commit()
                logger.info(
                    "statement_import_completed",
                    extra={"imported": stats.imported, "skipped": stats.skipped, "errors": stats.errors},
                )
            return bank_import, stats
        except Exception:
            self._session.rollback()
            raise
