"""
Tests for settings loading: packaged defaults, YAML overlay, environment
overrides, validation and the config -> kernel bridges.
"""

import pytest
import yaml

from inventory_config import CONFIG_PATH_ENV, get_active_settings
from inventory_config.bridges import build_retry_policy, build_session_settings
from inventory_config.loader import (
    apply_env_overrides,
    load_settings,
    load_yaml_file,
    merge,
)
from inventory_config.settings import LedgerSettings
from inventory_kernel.db.tenant_executor import RetryPolicy, SessionSettings


def _write_yaml(path, data):
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


class TestDefaults:

    def test_packaged_defaults(self):
        settings = load_settings()

        assert settings.retry_attempts == 3
        assert settings.retry_base_delay_seconds == 0.2
        assert settings.session_timezone == "UTC"
        assert settings.statement_timeout_ms is None
        assert settings.fallback_unit == "kg"
        assert settings.database_url.startswith("postgresql://")


class TestOverlay:

    def test_overlay_merges_over_defaults(self, tmp_path):
        overlay = _write_yaml(
            tmp_path / "site.yaml",
            {"transactions": {"retry_attempts": 5}, "inventory": {"fallback_unit": "l"}},
        )

        settings = load_settings(overlay_path=overlay)

        assert settings.retry_attempts == 5
        assert settings.fallback_unit == "l"
        # Untouched keys keep their defaults
        assert settings.retry_base_delay_seconds == 0.2
        assert settings.session_timezone == "UTC"

    def test_missing_overlay_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(overlay_path=tmp_path / "missing.yaml")

    def test_non_mapping_document_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ValueError, match="expected a mapping"):
            load_yaml_file(path)

    def test_empty_document_is_empty_mapping(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        assert load_yaml_file(path) == {}

    def test_merge_is_recursive(self):
        base = {"a": {"x": 1, "y": 2}, "b": 1}
        merged = merge(base, {"a": {"y": 3}})

        assert merged == {"a": {"x": 1, "y": 3}, "b": 1}
        assert base == {"a": {"x": 1, "y": 2}, "b": 1}


class TestEnvironmentOverrides:

    def test_env_wins_over_overlay(self, tmp_path):
        overlay = _write_yaml(tmp_path / "site.yaml", {"transactions": {"retry_attempts": 5}})

        settings = load_settings(
            overlay_path=overlay,
            environ={
                "INVENTORY_RETRY_ATTEMPTS": "7",
                "INVENTORY_RETRY_BASE_DELAY": "0.5",
                "DATABASE_URL": "sqlite:///ledger.db",
            },
        )

        assert settings.retry_attempts == 7
        assert settings.retry_base_delay_seconds == 0.5
        assert settings.database_url == "sqlite:///ledger.db"

    def test_statement_timeout_and_unit(self):
        settings = load_settings(
            environ={
                "INVENTORY_STATEMENT_TIMEOUT_MS": "15000",
                "INVENTORY_FALLBACK_UNIT": "pcs",
            }
        )

        assert settings.statement_timeout_ms == 15000
        assert settings.fallback_unit == "pcs"

    def test_empty_values_ignored(self):
        settings = load_settings(environ={"INVENTORY_RETRY_ATTEMPTS": ""})
        assert settings.retry_attempts == 3

    def test_non_numeric_value_rejected(self):
        with pytest.raises(ValueError, match="INVENTORY_RETRY_ATTEMPTS"):
            apply_env_overrides({}, {"INVENTORY_RETRY_ATTEMPTS": "three"})

    def test_override_creates_missing_section(self):
        raw = apply_env_overrides({"transactions": None}, {"INVENTORY_RETRY_ATTEMPTS": "2"})
        assert raw["transactions"] == {"retry_attempts": 2}


class TestValidation:

    @pytest.mark.parametrize(
        "overrides",
        [
            {"database_url": ""},
            {"retry_attempts": 0},
            {"retry_base_delay_seconds": -0.1},
            {"statement_timeout_ms": 0},
            {"fallback_unit": ""},
        ],
    )
    def test_invalid_values_rejected(self, overrides):
        values = {"database_url": "sqlite://"}
        values.update(overrides)

        with pytest.raises(ValueError):
            LedgerSettings(**values)


class TestActiveSettings:

    def test_config_path_from_environment(self, tmp_path, monkeypatch, captured_logs):
        overlay = _write_yaml(tmp_path / "env.yaml", {"transactions": {"retry_attempts": 4}})
        monkeypatch.setenv(CONFIG_PATH_ENV, str(overlay))
        monkeypatch.delenv("INVENTORY_RETRY_ATTEMPTS", raising=False)

        settings = get_active_settings()

        assert settings.retry_attempts == 4
        traces = [r for r in captured_logs() if r["message"] == "INVENTORY_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["config_path"] == str(overlay)
        assert "database_url" not in traces[0]


class TestBridges:

    def test_retry_policy(self):
        settings = LedgerSettings(
            database_url="sqlite://", retry_attempts=4, retry_base_delay_seconds=0.3
        )

        assert build_retry_policy(settings) == RetryPolicy(attempts=4, base_delay_seconds=0.3)

    def test_session_settings(self):
        settings = LedgerSettings(
            database_url="sqlite://",
            session_timezone="America/Chicago",
            statement_timeout_ms=2500,
        )

        assert build_session_settings(settings) == SessionSettings(
            timezone="America/Chicago", statement_timeout_ms=2500
        )
