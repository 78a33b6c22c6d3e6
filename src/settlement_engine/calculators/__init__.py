"""Final settlement calculation."""

from settlement_engine.calculators.compliance import ComplianceRulesProvider, OvertimeKind
from settlement_engine.calculators.deductions import (
    DeductionEstimator,
    StatutoryDeductionEstimator,
)
from settlement_engine.calculators.settlement import SettlementCalculator
from settlement_engine.calculators.types import (
    Beneficiary,
    DepartureType,
    DismissalFault,
    EmployeeCategory,
    NoticeDisposition,
    SalaryHistory,
    SettlementRequest,
    SettlementResult,
)

__all__ = [
    "ComplianceRulesProvider",
    "OvertimeKind",
    "DeductionEstimator",
    "StatutoryDeductionEstimator",
    "SettlementCalculator",
    "Beneficiary",
    "DepartureType",
    "DismissalFault",
    "EmployeeCategory",
    "NoticeDisposition",
    "SalaryHistory",
    "SettlementRequest",
    "SettlementResult",
]
