"""
Tests for the configuration loader.

Verifies:
- Defaults apply without a file
- YAML sections map onto the settings dataclasses
- Unknown keys and out-of-range values are rejected
- Environment overrides win over the file
"""

from decimal import Decimal

import pytest

from backoffice_config import get_active_config, reset_active_config
from backoffice_config.loader import load_config, parse_config
from backoffice_config.schema import DEFAULT_OFX_MAX_BYTES
from backoffice_modules.cash.config import ReconciliationConfig


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "backoffice.yaml"
    path.write_text(
        "database:\n"
        "  url: postgresql://app@db/backoffice\n"
        "  pool_size: 4\n"
        "logging:\n"
        "  level: DEBUG\n"
        "reconciliation:\n"
        "  ofx_max_bytes: 1024\n"
        "  pending_balance_epsilon: 0.05\n",
        encoding="utf-8",
    )
    return path


class TestLoadConfig:

    def test_defaults(self):
        config = load_config(environ={})
        assert config.database.url == "sqlite://"
        assert config.reconciliation.ofx_max_bytes == DEFAULT_OFX_MAX_BYTES
        assert config.source_path is None

    def test_yaml_file(self, config_file):
        config = load_config(config_file, environ={})
        assert config.database.url == "postgresql://app@db/backoffice"
        assert config.database.pool_size == 4
        assert config.logging.level == "DEBUG"
        assert config.reconciliation.pending_balance_epsilon == Decimal("0.05")
        assert config.source_path == str(config_file)

    def test_path_from_environment(self, config_file):
        assert load_config(environ={"BACKOFFICE_CONFIG": str(config_file)}).logging.level == "DEBUG"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml", environ={})

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path, environ={}).database.url == "sqlite://"


class TestEnvironmentOverrides:

    def test_overrides_win(self, config_file):
        config = load_config(config_file, environ={
            "DATABASE_URL": "sqlite:///local.db",
            "BACKOFFICE_LOG_LEVEL": "WARNING",
            "BACKOFFICE_STATEMENT_TIMEOUT_MS": "5000",
            "BACKOFFICE_OFX_MAX_BYTES": "2048",
        })
        assert config.database.url == "sqlite:///local.db"
        assert config.database.pool_size == 4
        assert config.database.statement_timeout_ms == 5000
        assert config.logging.level == "WARNING"
        assert config.reconciliation.ofx_max_bytes == 2048

    def test_invalid_override(self):
        with pytest.raises(ValueError):
            load_config(environ={"BACKOFFICE_LOG_LEVEL": "LOUD"})


class TestParseConfig:

    @pytest.mark.parametrize("data", [
        {"cache": {}},
        {"database": {"host": "db"}},
    ])
    def test_unknown_keys(self, data):
        with pytest.raises(ValueError, match="Unknown"):
            parse_config(data)

    @pytest.mark.parametrize("data", [
        {"database": {"pool_size": 0}},
        {"reconciliation": {"ofx_max_bytes": 0}},
        {"reconciliation": {"pending_balance_epsilon": -1}},
        {"backup": {"system_log_limit": -5}},
    ])
    def test_out_of_range(self, data):
        with pytest.raises(ValueError):
            parse_config(data)


class TestActiveConfig:

    def test_cached_until_reset(self, monkeypatch, config_file):
        reset_active_config()
        monkeypatch.setenv("BACKOFFICE_CONFIG", str(config_file))
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("BACKOFFICE_LOG_LEVEL", raising=False)
        try:
            first = get_active_config()
            assert get_active_config() is first
            assert first.logging.level == "DEBUG"
        finally:
            reset_active_config()


def test_reconciliation_config_from_app_config(config_file):
    settings = ReconciliationConfig.from_app_config(load_config(config_file, environ={}))
    assert settings.max_upload_bytes == 1024
    assert settings.pending_epsilon == Decimal("0.05")
