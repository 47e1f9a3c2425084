"""
Unit tests - Cấu hình, phân quyền và logging.
"""

import io
import json
import logging
import sys
from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from ledger_integrity.core.config import StatutoryConfig, load_settings, load_statutory_config
from ledger_integrity.core.logging_config import JsonFormatter, configure_logging
from ledger_integrity.core.security import Permission, RBACService, UserRole
from ledger_integrity.domain.exceptions import PeriodLockedError
from ledger_integrity.domain.value_objects import AccountingPeriod


class TestAccountingPeriod:

    @pytest.mark.parametrize("text,kind", [("2025-01", "MONTH"), ("2025-Q3", "QUARTER"), ("2025", "YEAR")])
    def test_parse(self, text, kind):
        period = AccountingPeriod.parse(text)
        assert period.period_type.value == kind
        assert str(period) == text

    @pytest.mark.parametrize("text", ["2025-13", "2025-Q5", "01/2025", "", "2025-1"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            AccountingPeriod.parse(text)

    def test_bounds_and_neighbours(self):
        february = AccountingPeriod.parse("2024-02")
        assert february.end_date == date(2024, 2, 29)
        assert str(AccountingPeriod.parse("2025-01").previous()) == "2024-12"
        assert str(AccountingPeriod.parse("2025-Q4").next()) == "2026-Q1"
        assert AccountingPeriod.parse("2025-Q2").contains(date(2025, 6, 30))

    def test_covering_periods(self):
        covering = [str(p) for p in AccountingPeriod.parse("2025-05").covering_periods()]
        assert covering == ["2025-05", "2025-Q2", "2025"]


class TestStatutoryConfig:

    def test_defaults(self):
        config = StatutoryConfig()
        assert config.insurance_salary_cap == Decimal("46800000")
        assert config.unlock_reason_min_length == 10

    def test_loaded_from_json(self, tmp_path):
        path = tmp_path / "statutory.json"
        path.write_text(json.dumps({"fiscal_year": 2025, "base_salary": "2340000", "submission_deadline_day": 25}))
        config = load_statutory_config(path)
        assert config.fiscal_year == 2025
        assert config.submission_deadline_day == 25

    def test_gapped_brackets_rejected(self):
        with pytest.raises(ValidationError):
            StatutoryConfig(pit_brackets=[
                {"lower": 0, "upper": 5000000, "rate": "0.05"},
                {"lower": 6000000, "upper": None, "rate": "0.1"},
            ])

    def test_settings_from_environment(self, monkeypatch):
        monkeypatch.setenv("LEDGER_STORE", "sql")
        monkeypatch.setenv("LOG_JSON", "true")
        monkeypatch.delenv("STATUTORY_CONFIG_PATH", raising=False)
        settings = load_settings()
        assert settings.ledger_store == "sql"
        assert settings.log_json is True
        assert settings.statutory_config_path is None


class TestRBAC:

    def test_lock_permissions(self):
        rbac = RBACService()
        assert rbac.can_lock_period(UserRole.CHIEF_ACCOUNTANT)
        assert not rbac.can_lock_period("ACCOUNTANT")
        assert rbac.can_unlock_period("ADMIN")
        assert not rbac.can_unlock_period("CHIEF_ACCOUNTANT")

    def test_only_period_actions_are_gated(self):
        rbac = RBACService()
        assert set(Permission) == {Permission.PERIOD_LOCK, Permission.PERIOD_UNLOCK}
        assert rbac.get_user_permissions(UserRole.ACCOUNTANT) == []

    def test_unknown_role_has_nothing(self):
        rbac = RBACService()
        assert rbac.get_user_permissions("INTERN") == []
        assert not rbac.has_permission("INTERN", Permission.PERIOD_LOCK)


class TestLogging:

    def test_json_formatter_includes_extra_and_error_code(self):
        formatter = JsonFormatter()
        try:
            raise PeriodLockedError("2025-01")
        except PeriodLockedError:
            record = logging.getLogger("ledger_integrity.test").makeRecord(
                "ledger_integrity.test", logging.WARNING, __file__, 1, "blocked %s", ("POST",),
                exc_info=sys.exc_info(), extra={"document_id": "doc-1"},
            )
        payload = json.loads(formatter.format(record))
        assert payload["message"] == "blocked POST"
        assert payload["level"] == "WARNING"
        assert payload["document_id"] == "doc-1"
        assert payload["exc_code"] == "PERIOD_LOCKED"

    def test_configure_logging_writes_json(self):
        stream = io.StringIO()
        configure_logging("INFO", json_format=True, stream=stream)
        logging.getLogger("ledger_integrity.application.ledger_service").info("created %s", "CT202501001")
        line = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert line["message"] == "created CT202501001"
        assert line["logger"] == "ledger_integrity.application.ledger_service"
