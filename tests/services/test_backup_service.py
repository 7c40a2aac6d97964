"""
Tests for BackupService.

Verifies:
- Every mapped table is exported with its rows
- Password columns are redacted
- The JSON document carries counts and serializes UUIDs, datetimes and Decimals
"""

import json

import pytest

from backoffice_modules.parties.models import UserRole
from backoffice_services.backup_service import REDACTED, BackupService


@pytest.fixture
def backup_service(session, deterministic_clock):
    return BackupService(session, clock=deterministic_clock)


class TestExport:

    def test_tables_and_counts(self, backup_service, mug, client):
        backup = backup_service.export()
        assert backup.counts["products"] == 1
        assert backup.counts["clients"] == 1
        assert backup.counts["users"] == 1
        assert backup.counts["orders"] == 0

    def test_passwords_redacted(self, backup_service, party_service):
        party_service.create_user("admin", "Ada", UserRole.ADMIN, password_hash="$2b$12$secret")
        party_service.create_user("nopass", "Ned", UserRole.FINANCE)
        rows = {r["username"]: r for r in backup_service.export().tables["users"]}
        assert rows["admin"]["password_hash"] == REDACTED
        assert rows["nopass"]["password_hash"] is None

    def test_json_document(self, backup_service, mug, deterministic_clock):
        document = json.loads(backup_service.export().to_json())
        assert document["exported_at"] == deterministic_clock.now().isoformat()
        (product,) = document["tables"]["products"]
        assert product["name"] == "Ceramic mug"
        assert product["id"] == str(mug.id)
        assert document["counts"]["products"] == 1

    def test_export_to_file(self, backup_service, mug, tmp_path):
        target = tmp_path / "backup.json"
        backup_service.export_to_file(target)
        assert json.loads(target.read_text(encoding="utf-8"))["counts"]["products"] == 1

    def test_system_log_limit(self, session, deterministic_clock, mug):
        backup = BackupService(session, clock=deterministic_clock, system_log_limit=0).export()
        assert backup.counts["system_logs"] == 0
