# tests/config/test_loader.py
"""
Тесты для модуля загрузки конфигурации.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from roadside.config.loader import (
    DatabaseSettings,
    PaymentSettings,
    RedisSettings,
    Settings,
    get_config_path,
    get_project_root,
    load_config_json,
)


class TestPaths:
    """Тесты определения путей."""

    def test_project_root_contains_package_and_config(self) -> None:
        root = get_project_root()

        assert isinstance(root, Path)
        assert (root / "roadside").is_dir()
        assert (root / "config").is_dir()

    def test_config_path(self) -> None:
        path = get_config_path()

        assert path.name == "config.json"
        assert path.parent.name == "config"


class TestLoadConfigJson:
    """Тесты для load_config_json."""

    def test_loads_dict_with_known_keys(self) -> None:
        data = load_config_json()

        assert data["PROJECT_NAME"] == "roadside_dispatch"
        assert data["TIMEZONE"] == "America/Sao_Paulo"
        assert "PLATFORM_FEE_PERCENT" in data

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with patch("roadside.config.loader.get_config_path", return_value=tmp_path / "missing.json"):
            with pytest.raises(FileNotFoundError):
                load_config_json()


class TestSettingsFromConfigJson:
    """Тесты сборки Settings из config.json."""

    def test_domain_values(self) -> None:
        s = Settings.from_config_json()

        assert s.pricing.DAY_BASE_FEE == Decimal("50.00")
        assert s.pricing.AFTER_HOURS_BASE_FEE == Decimal("100.00")
        assert s.pricing.AFTER_HOURS_START_HOUR == 18
        assert s.pricing.AFTER_HOURS_END_HOUR == 6
        assert s.pricing.PLATFORM_FEE_PERCENT == Decimal("20")
        assert s.dispatch.EARNINGS_HOLD_HOURS == 12
        assert s.payments.REFUND_FAILURE_POLICY == "proceed"

    def test_env_overrides_host(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_HOST", "db.internal")
        monkeypatch.setenv("REDIS_PORT", "6380")

        s = Settings.from_config_json()

        assert s.database.DB_HOST == "db.internal"
        assert s.redis.REDIS_PORT == 6380

    def test_comment_keys_ignored(self) -> None:
        s = Settings.from_config_json()
        assert not hasattr(s, "_comment_system")


class TestSections:
    """Тесты отдельных секций."""

    def test_database_dsn(self) -> None:
        db = DatabaseSettings(DB_HOST="h", DB_PORT=5433, DB_NAME="n", DB_USER="u", DB_PASSWORD="p")
        assert db.dsn == "postgresql://u:p@h:5433/n"

    def test_database_password_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_PASSWORD", "from-env")
        assert DatabaseSettings(DB_PASSWORD="").DB_PASSWORD == "from-env"

    def test_redis_url_with_and_without_password(self) -> None:
        assert RedisSettings(REDIS_PASSWORD="").url == "redis://localhost:6379/0"
        assert RedisSettings(REDIS_PASSWORD="secret").url == "redis://:secret@localhost:6379/0"

    @pytest.mark.parametrize("policy", ["proceed", "block"])
    def test_refund_policy_accepted(self, policy: str) -> None:
        assert PaymentSettings(REFUND_FAILURE_POLICY=policy).REFUND_FAILURE_POLICY == policy

    def test_refund_policy_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PaymentSettings(REFUND_FAILURE_POLICY="retry")
