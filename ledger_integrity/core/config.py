"""
Cấu hình hệ thống và tham số pháp định (tỷ lệ BH, mức trần, biểu thuế, hạn nộp).

Tham số pháp định được nạp từ file JSON để cập nhật theo năm tài chính mà
không phải sửa engine.
"""

import os
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator


class InsuranceRates(BaseModel):
    social: Decimal = Field(..., ge=0, le=1, description="BHXH")
    health: Decimal = Field(..., ge=0, le=1, description="BHYT")
    unemployment: Decimal = Field(..., ge=0, le=1, description="BHTN")
    accident: Decimal = Field(Decimal("0"), ge=0, le=1, description="BHTNLĐ-BNN")


class PitBracket(BaseModel):
    """Bậc thuế TNCN lũy tiến từng phần; upper=None là bậc cuối."""
    lower: Decimal = Field(..., ge=0)
    upper: Decimal | None = None
    rate: Decimal = Field(..., ge=0, le=1)


def _default_pit_brackets() -> list[PitBracket]:
    rows = [
        (0, 5_000_000, "0.05"),
        (5_000_000, 10_000_000, "0.10"),
        (10_000_000, 18_000_000, "0.15"),
        (18_000_000, 32_000_000, "0.20"),
        (32_000_000, 52_000_000, "0.25"),
        (52_000_000, 80_000_000, "0.30"),
        (80_000_000, None, "0.35"),
    ]
    return [
        PitBracket(
            lower=Decimal(lower),
            upper=Decimal(upper) if upper is not None else None,
            rate=Decimal(rate),
        )
        for lower, upper, rate in rows
    ]


class StatutoryConfig(BaseModel):
    """Tham số pháp định (mặc định: năm 2024)."""

    model_config = ConfigDict(frozen=True)

    fiscal_year: int = 2024
    employee_rates: InsuranceRates = InsuranceRates(
        social=Decimal("0.08"), health=Decimal("0.015"), unemployment=Decimal("0.01")
    )
    company_rates: InsuranceRates = InsuranceRates(
        social=Decimal("0.175"),
        health=Decimal("0.03"),
        unemployment=Decimal("0.01"),
        accident=Decimal("0.005"),
    )
    base_salary: Decimal = Field(Decimal("2340000"), gt=0, description="Lương cơ sở")
    insurance_cap_multiplier: Decimal = Field(Decimal("20"), gt=0)
    personal_deduction: Decimal = Field(Decimal("11000000"), ge=0)
    dependent_deduction: Decimal = Field(Decimal("4400000"), ge=0)
    pit_brackets: list[PitBracket] = Field(default_factory=_default_pit_brackets)
    vat_rates: list[Decimal] = Field(
        default_factory=lambda: [Decimal("0"), Decimal("5"), Decimal("8"), Decimal("10")]
    )
    submission_deadline_day: int = Field(20, ge=1, le=28, description="Ngày hạn nộp hàng tháng")
    balance_tolerance: Decimal = Field(Decimal("0.01"), ge=0)
    unlock_reason_min_length: int = Field(10, ge=1)

    @model_validator(mode="after")
    def _check_brackets(self) -> "StatutoryConfig":
        previous_upper = Decimal("0")
        for idx, bracket in enumerate(self.pit_brackets):
            if bracket.lower != previous_upper:
                raise ValueError("Biểu thuế TNCN phải liên tục, bắt đầu từ 0")
            if bracket.upper is None and idx != len(self.pit_brackets) - 1:
                raise ValueError("Chỉ bậc cuối được để trống mức trên")
            previous_upper = bracket.upper if bracket.upper is not None else previous_upper
        return self

    @property
    def insurance_salary_cap(self) -> Decimal:
        """Mức đóng BHXH tối đa = hệ số x lương cơ sở."""
        return self.base_salary * self.insurance_cap_multiplier


def load_statutory_config(path: str | Path | None = None) -> StatutoryConfig:
    if path is None:
        return StatutoryConfig()
    return StatutoryConfig.model_validate_json(Path(path).read_text(encoding="utf-8"))


@dataclass(frozen=True)
class Settings:
    app_env: str
    ledger_store: str          # memory | sql
    database_type: str         # sqlite | postgresql
    log_level: str
    log_json: bool
    statutory_config_path: str | None


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_settings() -> Settings:
    return Settings(
        app_env=os.getenv("APP_ENV", "development"),
        ledger_store=os.getenv("LEDGER_STORE", "memory"),
        database_type=os.getenv("DATABASE_TYPE", "sqlite"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=_parse_bool(os.getenv("LOG_JSON"), False),
        statutory_config_path=os.getenv("STATUTORY_CONFIG_PATH") or None,
    )
