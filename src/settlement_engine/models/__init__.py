"""SQLAlchemy ORM models for the settlement engine."""

from settlement_engine.models.base import Base, TimestampMixin, utcnow
from settlement_engine.models.company import Tenant
from settlement_engine.models.employee import Employee, EmployeeSalary, LeaveBalance
from settlement_engine.models.termination import (
    AuditEvent,
    TerminationCase,
    TerminationDocument,
    result_columns,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "utcnow",
    "Tenant",
    "Employee",
    "EmployeeSalary",
    "LeaveBalance",
    "TerminationCase",
    "TerminationDocument",
    "AuditEvent",
    "result_columns",
]
