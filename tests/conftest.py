"""Pytest fixtures for settlement engine tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, AsyncGenerator
from uuid import UUID

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from settlement_engine.calculators import SettlementCalculator
from settlement_engine.calculators.types import (
    DepartureType,
    DismissalFault,
    EmployeeCategory,
    NoticeDisposition,
    SalaryHistory,
    SettlementRequest,
)
from settlement_engine.config import Settings
from settlement_engine.database import make_session_factory
from settlement_engine.documents import StubDocumentGenerator
from settlement_engine.events import AsyncEventEmitter, DomainEvent
from settlement_engine.models import Base, Employee, EmployeeSalary, LeaveBalance, Tenant
from settlement_engine.services import (
    AsyncioJobQueue,
    TerminationProcessor,
    TerminationService,
)

TENANT_ID = UUID("adfb6898-026f-4a17-8583-404672c7972a")
OTHER_TENANT_ID = UUID("0d6f2a61-5b3e-4c8e-9f1a-7e2d4c6b8a90")
EMPLOYEE_ID = UUID("e5a4c9d3-4567-49ab-8def-012345678901")
UNPAID_EMPLOYEE_ID = UUID("f6b5dae4-5678-4abc-9ef0-123456789012")

HIRE_DATE = date(2020, 1, 1)
TERMINATION_DATE = date(2026, 3, 31)
MONTHLY_SALARY = Decimal("300000")
UNUSED_LEAVE_DAYS = Decimal("10")
ENGINE_VERSION = "test-1.0.0"


_ECONOMIC_FOR_DISMISSAL = object()


def make_request(
    departure_type: DepartureType = DepartureType.DISMISSAL,
    notice_disposition: NoticeDisposition = NoticeDisposition.PAID_BY_EMPLOYER,
    dismissal_fault: Any = _ECONOMIC_FOR_DISMISSAL,
    employee_id: UUID = EMPLOYEE_ID,
    tenant_id: UUID = TENANT_ID,
    termination_date: date = TERMINATION_DATE,
    **overrides: Any,
) -> SettlementRequest:
    """Settlement request for the seeded employee (economic dismissal by default).

    Dismissals get an economic fault unless one is passed explicitly; other
    departure types get none.
    """
    if dismissal_fault is _ECONOMIC_FOR_DISMISSAL:
        dismissal_fault = (
            DismissalFault.ECONOMIC if departure_type == DepartureType.DISMISSAL else None
        )
    return SettlementRequest(
        employee_id=employee_id,
        tenant_id=tenant_id,
        departure_type=departure_type,
        termination_date=termination_date,
        notice_disposition=notice_disposition,
        dismissal_fault=dismissal_fault,
        **overrides,
    )


def make_history(**overrides) -> SalaryHistory:
    """Salary history matching the seeded employee."""
    values = {
        "hire_date": HIRE_DATE,
        "current_monthly_salary": MONTHLY_SALARY,
        "monthly_salaries": (MONTHLY_SALARY,) * 12,
        "unused_leave_days": UNUSED_LEAVE_DAYS,
        "category": EmployeeCategory.WORKER,
        "country_code": "CI",
    }
    values.update(overrides)
    return SalaryHistory(**values)


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a per-test SQLite file."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'settlement.db'}",
        database_url_sync=f"sqlite:///{tmp_path / 'settlement.db'}",
        engine_version=ENGINE_VERSION,
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="DEBUG",
        default_country_code="CI",
        stale_claim_timeout_seconds=900,
        reaper_interval_seconds=60,
        document_base_url="https://documents.test/terminations",
    )


@pytest_asyncio.fixture
async def engine(settings: Settings):
    """Create test database engine with the schema."""
    engine = create_async_engine(settings.database_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for assertions on persisted state."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded(session_factory) -> None:
    """CI tenant with one salaried worker and one employee without salary records."""
    async with session_factory() as session:
        session.add(Tenant(tenant_id=TENANT_ID, name="Acme Abidjan", country_code="CI"))
        session.add(Tenant(tenant_id=OTHER_TENANT_ID, name="Other Co", country_code="CI"))
        await session.flush()
        session.add_all(
            [
                Employee(
                    employee_id=EMPLOYEE_ID,
                    tenant_id=TENANT_ID,
                    employee_number="E-001",
                    first_name="Awa",
                    last_name="Kone",
                    category="worker",
                    contract_type="CDI",
                    dob=date(1985, 5, 20),
                    hire_date=HIRE_DATE,
                ),
                Employee(
                    employee_id=UNPAID_EMPLOYEE_ID,
                    tenant_id=TENANT_ID,
                    employee_number="E-002",
                    first_name="Yao",
                    last_name="Kouassi",
                    category="worker",
                    contract_type="CDI",
                    hire_date=HIRE_DATE,
                ),
            ]
        )
        await session.flush()
        session.add(
            EmployeeSalary(
                employee_id=EMPLOYEE_ID,
                base_salary=MONTHLY_SALARY,
                effective_from=HIRE_DATE,
            )
        )
        session.add(
            LeaveBalance(
                employee_id=EMPLOYEE_ID,
                year=2026,
                accrued_days=UNUSED_LEAVE_DAYS,
                taken_days=Decimal("0"),
            )
        )
        await session.commit()


@pytest.fixture
def documents(settings: Settings) -> StubDocumentGenerator:
    return StubDocumentGenerator(base_url=settings.document_base_url)


@pytest.fixture
def published() -> list[DomainEvent]:
    """Events published through the emitter fixture."""
    return []


@pytest.fixture
def emitter(published: list[DomainEvent]) -> AsyncEventEmitter:
    emitter = AsyncEventEmitter()

    async def record(event: DomainEvent) -> None:
        published.append(event)

    emitter.on_all(record)
    return emitter


@pytest.fixture
def calculator() -> SettlementCalculator:
    return SettlementCalculator(engine_version=ENGINE_VERSION)


@pytest.fixture
def processor(session_factory, calculator, documents, emitter, settings) -> TerminationProcessor:
    return TerminationProcessor(
        session_factory,
        calculator,
        documents,
        emitter=emitter,
        settings=settings,
    )


@pytest_asyncio.fixture
async def queue() -> AsyncGenerator[AsyncioJobQueue, None]:
    queue = AsyncioJobQueue()
    yield queue
    await queue.shutdown()


@pytest.fixture
def service(session_factory, calculator, queue, processor) -> TerminationService:
    return TerminationService(session_factory, calculator, queue, processor)
