"""Statutory deduction estimate for a final settlement."""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol

from settlement_engine.calculators.compliance import ComplianceRulesProvider
from settlement_engine.calculators.types import DeductionEstimate, SettlementItems


class DeductionEstimator(Protocol):
    """Turns itemized settlement amounts into statutory deductions."""

    def estimate(
        self, items: SettlementItems, rules: ComplianceRulesProvider
    ) -> DeductionEstimate:
        ...


class StatutoryDeductionEstimator:
    """Default estimator.

    Salary-like items (prorated salary, vacation payout, gratification and
    notice) are fully taxable and carry the employee social contribution.
    Severance is exempt up to the indemnity threshold and half taxable above
    it. Income tax is a flat effective rate picked by the band of the total
    taxable amount.
    """

    HALF = Decimal("0.5")

    def estimate(
        self, items: SettlementItems, rules: ComplianceRulesProvider
    ) -> DeductionEstimate:
        table = rules.rules

        salary_like = (
            items.prorated_salary
            + items.vacation_payout
            + items.gratification
            + items.notice_payment
        )
        # Notice owed by the employee can push this below zero
        salary_like = max(salary_like, Decimal("0"))

        taxable_indemnity = Decimal("0")
        if items.severance > table.indemnity_tax_threshold:
            taxable_indemnity = items.severance * self.HALF

        taxable = salary_like + taxable_indemnity
        social = salary_like * table.employee_social_rate
        income_tax = taxable * self._income_tax_rate(taxable, rules)

        return DeductionEstimate(
            taxable_amount=rules.round_amount(taxable),
            social_contribution=rules.round_amount(social),
            income_tax=rules.round_amount(income_tax),
        )

    @staticmethod
    def _income_tax_rate(taxable: Decimal, rules: ComplianceRulesProvider) -> Decimal:
        for band in rules.rules.income_tax_bands:
            if band.max_amount is None or taxable <= band.max_amount:
                return band.rate
        return rules.rules.income_tax_bands[-1].rate
