"""Loads the salary history a settlement calculation needs."""

from __future__ import annotations

import calendar
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from settlement_engine.calculators.types import ContractType, EmployeeCategory, SalaryHistory
from settlement_engine.errors import NotFoundError
from settlement_engine.models import Employee, EmployeeSalary, LeaveBalance, Tenant

TRAILING_MONTHS = 12


def trailing_month_ends(termination_date: date, months: int = TRAILING_MONTHS) -> list[date]:
    """Reference dates of the trailing window, most recent first.

    The termination month is referenced on the termination date itself,
    earlier months on their last calendar day.
    """
    refs = [termination_date]
    year, month = termination_date.year, termination_date.month
    for _ in range(months - 1):
        month -= 1
        if month == 0:
            year, month = year - 1, 12
        refs.append(date(year, month, calendar.monthrange(year, month)[1]))
    return refs


class SalaryHistoryLoader:
    """Builds a SalaryHistory from employee, salary and leave records."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def load(
        self,
        employee_id: UUID,
        tenant_id: UUID,
        termination_date: date,
    ) -> SalaryHistory:
        """Load the history as of the termination date.

        Raises:
            NotFoundError: Employee or salary records do not exist
        """
        employee = await self._get_employee(employee_id, tenant_id)
        tenant = await self.session.get(Tenant, tenant_id)
        if tenant is None:
            raise NotFoundError("Tenant", tenant_id)

        salaries = await self._get_salaries(employee_id, termination_date)
        if not salaries:
            raise NotFoundError("Salary history", employee_id)

        current = self._salary_on(salaries, termination_date) or salaries[0]

        monthly: list[Decimal] = []
        for ref in trailing_month_ends(termination_date):
            if ref < employee.hire_date:
                break
            record = self._salary_on(salaries, ref)
            if record is not None:
                monthly.append(Decimal(record.base_salary))

        return SalaryHistory(
            hire_date=employee.hire_date,
            current_monthly_salary=Decimal(current.base_salary),
            monthly_salaries=tuple(monthly),
            unused_leave_days=await self._unused_leave_days(employee_id),
            category=EmployeeCategory(employee.category),
            country_code=tenant.country_code,
            categorical_salary=(
                Decimal(current.categorical_salary)
                if current.categorical_salary is not None
                else None
            ),
            date_of_birth=employee.dob,
            contract_type=ContractType(employee.contract_type),
            contract_end_date=employee.contract_end_date,
        )

    async def _get_employee(self, employee_id: UUID, tenant_id: UUID) -> Employee:
        result = await self.session.execute(
            select(Employee).where(
                Employee.employee_id == employee_id,
                Employee.tenant_id == tenant_id,
            )
        )
        employee = result.scalar_one_or_none()
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        return employee

    async def _get_salaries(
        self, employee_id: UUID, termination_date: date
    ) -> list[EmployeeSalary]:
        """Salary records effective on or before the termination date, newest first."""
        result = await self.session.execute(
            select(EmployeeSalary)
            .where(
                EmployeeSalary.employee_id == employee_id,
                EmployeeSalary.effective_from <= termination_date,
            )
            .order_by(EmployeeSalary.effective_from.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    def _salary_on(salaries: list[EmployeeSalary], as_of: date) -> EmployeeSalary | None:
        for record in salaries:
            if record.is_active_on(as_of):
                return record
        return None

    async def _unused_leave_days(self, employee_id: UUID) -> Decimal:
        result = await self.session.execute(
            select(LeaveBalance).where(LeaveBalance.employee_id == employee_id)
        )
        return sum(
            (balance.remaining_days for balance in result.scalars().all()),
            Decimal("0"),
        )
