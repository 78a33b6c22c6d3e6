"""Employee, salary and leave-balance models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settlement_engine.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from settlement_engine.models.company import Tenant


class Employee(Base, TimestampMixin):
    """Employee record."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_number: Mapped[str] = mapped_column(String, nullable=False)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    category: Mapped[str] = mapped_column(String, nullable=False, default="worker")
    contract_type: Mapped[str] = mapped_column(String, nullable=False, default="CDI")
    contract_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    dob: Mapped[date | None] = mapped_column(Date, nullable=True)
    hire_date: Mapped[date] = mapped_column(Date, nullable=False)
    termination_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "employee_number", name="employee_tenant_number_unique"),
        CheckConstraint(
            "status IN ('active', 'terminated', 'on_leave')",
            name="employee_status_check",
        ),
        CheckConstraint("category IN ('worker', 'executive')", name="employee_category_check"),
        CheckConstraint(
            "contract_type IN ('CDI', 'CDD', 'CDDTI', 'INTERIM')",
            name="employee_contract_type_check",
        ),
    )

    # Relationships
    tenant: Mapped[Tenant] = relationship(back_populates="employees")
    salaries: Mapped[list[EmployeeSalary]] = relationship(back_populates="employee")
    leave_balances: Mapped[list[LeaveBalance]] = relationship(back_populates="employee")


class EmployeeSalary(Base, TimestampMixin):
    """Monthly base salary effective over a date range."""

    __tablename__ = "employee_salary"

    employee_salary_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    base_salary: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    categorical_salary: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint("base_salary >= 0", name="employee_salary_non_negative"),
        CheckConstraint(
            "effective_to IS NULL OR effective_to >= effective_from",
            name="employee_salary_dates_check",
        ),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="salaries")

    def is_active_on(self, as_of_date: date) -> bool:
        """Check if the salary applies on a given date."""
        if self.effective_from > as_of_date:
            return False
        if self.effective_to is not None and self.effective_to < as_of_date:
            return False
        return True


class LeaveBalance(Base, TimestampMixin):
    """Annual-leave balance of an employee for one year."""

    __tablename__ = "leave_balance"

    leave_balance_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(nullable=False)
    accrued_days: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=0)
    taken_days: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("employee_id", "year", name="leave_balance_employee_year_unique"),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="leave_balances")

    @property
    def remaining_days(self) -> Decimal:
        return Decimal(self.accrued_days) - Decimal(self.taken_days)
