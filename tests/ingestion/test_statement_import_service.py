"""
Tests for StatementImportService.

Verifies:
- New FITIDs are stored unmatched and counted as imported
- Re-importing the same file imports nothing and skips every line
- Oversized uploads are rejected before parsing
- The import is audited after commit
"""

import hashlib

import pytest
from sqlalchemy import select

from backoffice_ingestion.services.statement_import_service import StatementImportService
from backoffice_kernel.exceptions import FileTooLargeError, OFXParseError
from backoffice_modules.cash.config import ReconciliationConfig
from backoffice_modules.cash.orm import BankImportModel, BankTransactionModel


@pytest.fixture
def importer(session, deterministic_clock, audit):
    return StatementImportService(session, clock=deterministic_clock, audit=audit)


class TestImport:

    def test_first_import(self, importer, session, sgml_statement):
        bank_import, stats = importer.import_bytes(sgml_statement, file_name="march.ofx")
        assert (stats.total, stats.imported, stats.skipped, stats.errors) == (3, 3, 0, 0)
        assert bank_import.file_hash == hashlib.sha256(sgml_statement).hexdigest()
        assert bank_import.account_id == "12345-6"
        assert bank_import.credit_total == "1300.00"

        rows = session.scalars(
            select(BankTransactionModel).where(BankTransactionModel.import_id == bank_import.id)
        ).all()
        assert len(rows) == 3
        assert {r.status for r in rows} == {"unmatched"}
        assert sum(1 for r in rows if not r.has_valid_date) == 1

    def test_reimport_skips_everything(self, importer, sgml_statement):
        importer.import_bytes(sgml_statement)
        _, stats = importer.import_bytes(sgml_statement)
        assert stats.imported == 0
        assert stats.skipped == 3

    def test_import_audited(self, importer, sgml_statement, audit_sink):
        importer.import_bytes(sgml_statement, file_name="march.ofx")
        assert audit_sink.actions() == ["bank_statement_imported"]
        assert audit_sink.events[0].details["imported"] == 3

    def test_import_file(self, importer, tmp_path, sgml_statement):
        path = tmp_path / "march.ofx"
        path.write_bytes(sgml_statement)
        bank_import, stats = importer.import_file(path)
        assert bank_import.file_name == "march.ofx"
        assert stats.imported == 3


class TestRejections:

    def test_oversized_upload(self, session, deterministic_clock, audit, sgml_statement):
        importer = StatementImportService(
            session, clock=deterministic_clock, audit=audit,
            config=ReconciliationConfig(max_upload_bytes=64),
        )
        with pytest.raises(FileTooLargeError) as exc_info:
            importer.import_bytes(sgml_statement)
        assert exc_info.value.max_size == 64
        assert session.scalars(select(BankImportModel)).all() == []

    def test_unparseable_upload(self, importer, session, audit_sink):
        with pytest.raises(OFXParseError):
            importer.import_bytes(b"not a statement")
        assert session.scalars(select(BankImportModel)).all() == []
        assert audit_sink.events == []
