"""Country labor-law tables and statutory lookups.

Every lookup returns the statutory floor. Callers take the maximum of the
floor and any negotiated or contractual value. The tables are immutable
module data, so a provider is safe to share across tasks.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from settlement_engine.calculators.types import EmployeeCategory
from settlement_engine.errors import ComputationError, ValidationError


class OvertimeKind(str, Enum):
    """Overtime categories with a statutory premium."""

    WEEKDAY_FIRST_TIER = "weekday_first_tier"
    WEEKDAY_SECOND_TIER = "weekday_second_tier"
    NIGHT = "night"
    SUNDAY_HOLIDAY = "sunday_holiday"
    SUNDAY_HOLIDAY_NIGHT = "sunday_holiday_night"


@dataclass(frozen=True)
class SeveranceBracket:
    """One seniority tier of the severance scale."""

    label: str
    from_years: Decimal
    to_years: Decimal | None  # None = no upper limit
    rate_percent: Decimal  # Percent of average monthly salary per year in tier


@dataclass(frozen=True)
class SeveranceRate:
    """Severance rate applicable to a given year of service."""

    bracket: str
    rate_percent: Decimal


@dataclass(frozen=True)
class NoticeStep:
    """Notice length for seniority strictly below ``below_years``."""

    below_years: Decimal | None  # None = catch-all
    days: int


@dataclass(frozen=True)
class IncomeTaxBand:
    """Flat effective income-tax rate for a band of taxable amount."""

    max_amount: Decimal | None  # None = no upper limit
    rate: Decimal


@dataclass(frozen=True)
class CountryRules:
    """Statutory parameters for one country."""

    country_code: str
    currency: str
    minor_unit: Decimal
    severance_brackets: dict[str | None, tuple[SeveranceBracket, ...]]
    notice_steps: dict[EmployeeCategory, tuple[NoticeStep, ...]]
    base_leave_days_per_month: Decimal
    young_worker_age: int
    young_worker_leave_days_per_month: Decimal
    seniority_leave_bonus: tuple[tuple[int, Decimal], ...]  # (years, extra days per year)
    overtime_multipliers: dict[OvertimeKind, Decimal]
    gratification_rate: Decimal
    retirement_age: int
    minimum_severance_years: Decimal
    indemnity_tax_threshold: Decimal
    employee_social_rate: Decimal
    income_tax_bands: tuple[IncomeTaxBand, ...]


# Simplified one-off estimate used for final settlements in the WAEMU zone
_WAEMU_INCOME_TAX_ESTIMATE = (
    IncomeTaxBand(Decimal("50000"), Decimal("0")),
    IncomeTaxBand(Decimal("130000"), Decimal("0.015")),
    IncomeTaxBand(Decimal("300000"), Decimal("0.05")),
    IncomeTaxBand(Decimal("600000"), Decimal("0.10")),
    IncomeTaxBand(Decimal("1500000"), Decimal("0.15")),
    IncomeTaxBand(None, Decimal("0.20")),
)


COUNTRY_RULES: dict[str, CountryRules] = {
    "CI": CountryRules(
        country_code="CI",
        currency="XOF",
        minor_unit=Decimal("1"),
        severance_brackets={
            None: (
                SeveranceBracket("0-5", Decimal("0"), Decimal("5"), Decimal("30")),
                SeveranceBracket("5-10", Decimal("5"), Decimal("10"), Decimal("35")),
                SeveranceBracket("10+", Decimal("10"), None, Decimal("40")),
            ),
        },
        notice_steps={
            EmployeeCategory.WORKER: (
                NoticeStep(Decimal("0.5"), 15),
                NoticeStep(Decimal("2"), 30),
                NoticeStep(Decimal("5"), 60),
                NoticeStep(None, 90),
            ),
            EmployeeCategory.EXECUTIVE: (
                NoticeStep(Decimal("0.5"), 30),
                NoticeStep(Decimal("2"), 60),
                NoticeStep(None, 90),
            ),
        },
        base_leave_days_per_month=Decimal("2.2"),
        young_worker_age=21,
        young_worker_leave_days_per_month=Decimal("2.5"),
        seniority_leave_bonus=(
            (25, Decimal("7")),
            (20, Decimal("5")),
            (15, Decimal("3")),
            (10, Decimal("2")),
            (5, Decimal("1")),
        ),
        overtime_multipliers={
            OvertimeKind.WEEKDAY_FIRST_TIER: Decimal("1.15"),
            OvertimeKind.WEEKDAY_SECOND_TIER: Decimal("1.50"),
            OvertimeKind.NIGHT: Decimal("1.75"),
            OvertimeKind.SUNDAY_HOLIDAY: Decimal("1.75"),
            OvertimeKind.SUNDAY_HOLIDAY_NIGHT: Decimal("2.00"),
        },
        gratification_rate=Decimal("0.75"),
        retirement_age=60,
        minimum_severance_years=Decimal("1"),
        indemnity_tax_threshold=Decimal("75000"),
        employee_social_rate=Decimal("0.063"),
        income_tax_bands=_WAEMU_INCOME_TAX_ESTIMATE,
    ),
    "SN": CountryRules(
        country_code="SN",
        currency="XOF",
        minor_unit=Decimal("1"),
        severance_brackets={
            None: (
                SeveranceBracket("0-5", Decimal("0"), Decimal("5"), Decimal("25")),
                SeveranceBracket("5-10", Decimal("5"), Decimal("10"), Decimal("30")),
                SeveranceBracket("10+", Decimal("10"), None, Decimal("40")),
            ),
        },
        notice_steps={
            EmployeeCategory.WORKER: (NoticeStep(None, 30),),
            EmployeeCategory.EXECUTIVE: (NoticeStep(None, 90),),
        },
        base_leave_days_per_month=Decimal("2"),
        young_worker_age=18,
        young_worker_leave_days_per_month=Decimal("2"),
        seniority_leave_bonus=(
            (20, Decimal("3")),
            (15, Decimal("2")),
            (10, Decimal("1")),
        ),
        overtime_multipliers={
            OvertimeKind.WEEKDAY_FIRST_TIER: Decimal("1.15"),
            OvertimeKind.WEEKDAY_SECOND_TIER: Decimal("1.40"),
            OvertimeKind.NIGHT: Decimal("1.60"),
            OvertimeKind.SUNDAY_HOLIDAY: Decimal("1.60"),
            OvertimeKind.SUNDAY_HOLIDAY_NIGHT: Decimal("2.00"),
        },
        gratification_rate=Decimal("0.75"),
        retirement_age=60,
        minimum_severance_years=Decimal("1"),
        indemnity_tax_threshold=Decimal("75000"),
        employee_social_rate=Decimal("0.056"),
        income_tax_bands=_WAEMU_INCOME_TAX_ESTIMATE,
    ),
}


def _require_non_negative(value: Decimal | int | None, name: str) -> None:
    if value is not None and value < 0:
        raise ValidationError(f"{name} must not be negative (got {value})", field=name)


class ComplianceRulesProvider:
    """Statutory lookups for one country.

    Usage:
        rules = ComplianceRulesProvider.for_country("CI")
        rules.severance_rate_for(Decimal("6"))      # 5-10 bracket, 35%
        rules.legal_minimum_notice_days(Decimal("3"), EmployeeCategory.WORKER)  # 60
    """

    def __init__(self, rules: CountryRules):
        self.rules = rules

    @classmethod
    def for_country(cls, country_code: str) -> ComplianceRulesProvider:
        """Get the provider for a country, raising ComputationError if unsupported."""
        rules = COUNTRY_RULES.get(country_code.upper())
        if rules is None:
            raise ComputationError(
                f"No compliance tables for country '{country_code}' "
                f"(supported: {', '.join(sorted(COUNTRY_RULES))})"
            )
        return cls(rules)

    @staticmethod
    def supported_countries() -> list[str]:
        return sorted(COUNTRY_RULES)

    @property
    def country_code(self) -> str:
        return self.rules.country_code

    @property
    def currency(self) -> str:
        return self.rules.currency

    def round_amount(self, amount: Decimal) -> Decimal:
        """Round to the currency's smallest unit (half-up)."""
        return amount.quantize(self.rules.minor_unit, rounding=ROUND_HALF_UP)

    def severance_brackets(self, sector: str | None = None) -> tuple[SeveranceBracket, ...]:
        """Severance tiers, sector-specific when the country defines them."""
        brackets = self.rules.severance_brackets
        if sector is not None and sector in brackets:
            return brackets[sector]
        return brackets[None]

    def severance_rate_for(
        self, years_of_service: Decimal, sector: str | None = None
    ) -> SeveranceRate:
        """Rate applicable to the bracket containing ``years_of_service``."""
        _require_non_negative(years_of_service, "years_of_service")
        brackets = self.severance_brackets(sector)
        for bracket in brackets:
            if bracket.to_years is None or years_of_service <= bracket.to_years:
                return SeveranceRate(bracket=bracket.label, rate_percent=bracket.rate_percent)
        # Tables always end with an open bracket
        last = brackets[-1]
        return SeveranceRate(bracket=last.label, rate_percent=last.rate_percent)

    def legal_minimum_notice_days(
        self, years_of_service: Decimal, category: EmployeeCategory
    ) -> int:
        """Minimum notice period in calendar days."""
        _require_non_negative(years_of_service, "years_of_service")
        steps = self.rules.notice_steps.get(category)
        if steps is None:
            raise ComputationError(
                f"No notice table for category '{category.value}' in {self.country_code}"
            )
        for step in steps:
            if step.below_years is None or years_of_service < step.below_years:
                return step.days
        return steps[-1].days

    def leave_accrual_minimum(
        self,
        age_years: int | None = None,
        seniority_years: Decimal | int | None = None,
    ) -> Decimal:
        """Minimum paid-leave accrual in days per month worked."""
        _require_non_negative(age_years, "age_years")
        _require_non_negative(seniority_years, "seniority_years")

        rules = self.rules
        days = rules.base_leave_days_per_month
        if age_years is not None and age_years < rules.young_worker_age:
            days = max(days, rules.young_worker_leave_days_per_month)

        if seniority_years is not None:
            for threshold, extra_per_year in rules.seniority_leave_bonus:
                if seniority_years >= threshold:
                    days += extra_per_year / 12
                    break

        return days.quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)

    def overtime_multiplier(self, kind: OvertimeKind) -> Decimal:
        """Statutory pay multiplier for an overtime category."""
        return self.rules.overtime_multipliers[kind]
