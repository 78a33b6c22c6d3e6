"""Tests for domain events and the async emitter."""

import json
from decimal import Decimal
from uuid import uuid4

from settlement_engine.events import (
    AsyncEventEmitter,
    EventMetadata,
    TerminationProcessingCompleted,
    TerminationProcessingFailed,
)
from tests.conftest import EMPLOYEE_ID, TENANT_ID


def completed_event() -> TerminationProcessingCompleted:
    return TerminationProcessingCompleted(
        metadata=EventMetadata.create(tenant_id=TENANT_ID),
        termination_case_id=uuid4(),
        employee_id=EMPLOYEE_ID,
        net_total=Decimal("1522208"),
        calculation_id=uuid4(),
        documents_version=1,
        document_refs={"work_certificate": "wc-1"},
    )


def failed_event() -> TerminationProcessingFailed:
    return TerminationProcessingFailed(
        metadata=EventMetadata.create(tenant_id=TENANT_ID, actor_type="reaper"),
        termination_case_id=uuid4(),
        employee_id=EMPLOYEE_ID,
        error_message="Processing timed out",
        progress=45,
        current_step="generating_final_payslip",
    )


class TestDomainEvents:
    """Tests for event serialization."""

    def test_event_type_is_class_name(self):
        assert completed_event().event_type == "TerminationProcessingCompleted"

    def test_to_dict_serializes_values(self):
        event = completed_event()
        data = event.to_dict()

        assert data["event_type"] == "TerminationProcessingCompleted"
        assert data["net_total"] == "1522208"
        assert data["employee_id"] == str(EMPLOYEE_ID)
        assert data["metadata"]["tenant_id"] == str(TENANT_ID)
        assert data["metadata"]["actor_type"] == "system"

    def test_to_json_round_trips_through_json(self):
        data = json.loads(failed_event().to_json())
        assert data["progress"] == 45
        assert data["metadata"]["actor_type"] == "reaper"


class TestAsyncEventEmitter:
    """Tests for AsyncEventEmitter."""

    async def test_typed_handler_only_receives_its_type(self):
        emitter = AsyncEventEmitter()
        received = []

        async def on_completed(event):
            received.append(event)

        emitter.on(TerminationProcessingCompleted, on_completed)
        await emitter.emit(failed_event())
        await emitter.emit(completed_event())

        assert [e.event_type for e in received] == ["TerminationProcessingCompleted"]

    async def test_handler_for_several_types(self):
        emitter = AsyncEventEmitter()
        received = []

        async def handler(event):
            received.append(event.event_type)

        emitter.on([TerminationProcessingCompleted, TerminationProcessingFailed], handler)
        await emitter.emit(failed_event())
        await emitter.emit(completed_event())

        assert received == ["TerminationProcessingFailed", "TerminationProcessingCompleted"]

    async def test_failing_handler_does_not_block_others(self):
        emitter = AsyncEventEmitter()
        received = []

        async def broken(event):
            raise RuntimeError("mail server down")

        async def healthy(event):
            received.append(event)

        emitter.on_all(broken)
        emitter.on_all(healthy)
        errors = await emitter.emit(completed_event())

        assert len(received) == 1
        assert len(errors) == 1
        assert str(errors[0]) == "mail server down"

    async def test_off_unregisters(self):
        emitter = AsyncEventEmitter()
        received = []

        async def handler(event):
            received.append(event)

        emitter.on_all(handler)
        emitter.off(handler)

        assert await emitter.emit(completed_event()) == []
        assert received == []
