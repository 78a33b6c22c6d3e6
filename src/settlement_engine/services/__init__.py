"""Termination workflow services."""

from settlement_engine.services.job_queue import AsyncioJobQueue, JobHandle, JobQueue
from settlement_engine.services.salary_history import SalaryHistoryLoader
from settlement_engine.services.state_machine import (
    InvalidTransitionError,
    TerminationStateMachine,
    TerminationStatus,
)
from settlement_engine.services.termination_processor import (
    ProcessingOutcome,
    TerminationProcessor,
)
from settlement_engine.services.termination_service import (
    DocumentRefs,
    ProcessingAccepted,
    ProgressSnapshot,
    TerminationService,
)

__all__ = [
    "AsyncioJobQueue",
    "JobHandle",
    "JobQueue",
    "SalaryHistoryLoader",
    "InvalidTransitionError",
    "TerminationStateMachine",
    "TerminationStatus",
    "ProcessingOutcome",
    "TerminationProcessor",
    "DocumentRefs",
    "ProcessingAccepted",
    "ProgressSnapshot",
    "TerminationService",
]
