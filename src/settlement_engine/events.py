"""Domain events for termination processing.

Events are immutable, traceable via metadata, and published through an
async emitter whose handlers are isolated from one another: a failing
handler is logged and the remaining handlers still receive the event.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol, TypeVar
from uuid import UUID, uuid4

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventMetadata:
    """Metadata attached to every domain event."""

    event_id: UUID
    timestamp: datetime
    tenant_id: UUID
    correlation_id: UUID  # Links events of one processing run
    actor_id: UUID | None
    actor_type: str  # 'user', 'system', 'reaper'
    source_service: str
    version: int = 1

    @classmethod
    def create(
        cls,
        tenant_id: UUID,
        correlation_id: UUID | None = None,
        actor_id: UUID | None = None,
        actor_type: str = "system",
        source_service: str = "termination_processor",
    ) -> EventMetadata:
        """Create metadata with auto-generated fields."""
        return cls(
            event_id=uuid4(),
            timestamp=datetime.now(timezone.utc).replace(tzinfo=None),
            tenant_id=tenant_id,
            correlation_id=correlation_id or uuid4(),
            actor_id=actor_id,
            actor_type=actor_type,
            source_service=source_service,
        )


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    metadata: EventMetadata

    @property
    def event_type(self) -> str:
        """Event type name for routing."""
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        """Serialize event to dictionary."""
        data = _serialize(asdict(self))
        data["event_type"] = self.event_type
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def _serialize(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: _serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(v) for v in obj]
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    return obj


@dataclass(frozen=True)
class TerminationProcessingCompleted(DomainEvent):
    """A case finished processing with all documents generated."""

    termination_case_id: UUID
    employee_id: UUID
    net_total: Decimal
    calculation_id: UUID
    documents_version: int
    document_refs: dict[str, str]


@dataclass(frozen=True)
class TerminationProcessingFailed(DomainEvent):
    """A case failed during calculation, document generation or by timeout."""

    termination_case_id: UUID
    employee_id: UUID
    error_message: str
    progress: int
    current_step: str | None


T = TypeVar("T", bound=DomainEvent)


class AsyncEventHandler(Protocol):
    """Protocol for asynchronous event handlers."""

    async def __call__(self, event: DomainEvent) -> None:
        ...


@dataclass
class HandlerRegistration:
    """Registration of an event handler."""

    handler: AsyncEventHandler
    event_types: set[str] | None  # None = all events


class AsyncEventEmitter:
    """Asynchronous event emitter.

    Usage:
        emitter = AsyncEventEmitter()

        async def notify_hr(event: TerminationProcessingCompleted) -> None:
            await send_mail(event)

        emitter.on(TerminationProcessingCompleted, notify_hr)
        await emitter.emit(event)
    """

    def __init__(self) -> None:
        self._handlers: list[HandlerRegistration] = []

    def on(
        self,
        event_type: type[T] | list[type[T]],
        handler: AsyncEventHandler,
    ) -> None:
        """Register handler for specific event type(s)."""
        if isinstance(event_type, list):
            types = {t.__name__ for t in event_type}
        else:
            types = {event_type.__name__}
        self._handlers.append(HandlerRegistration(handler=handler, event_types=types))

    def on_all(self, handler: AsyncEventHandler) -> None:
        """Register handler for all events."""
        self._handlers.append(HandlerRegistration(handler=handler, event_types=None))

    def off(self, handler: AsyncEventHandler) -> None:
        """Unregister a handler."""
        self._handlers = [reg for reg in self._handlers if reg.handler is not handler]

    async def emit(self, event: DomainEvent) -> list[Exception]:
        """Emit an event to all matching handlers.

        Returns list of any exceptions raised by handlers.
        """
        event_type = event.event_type
        tasks = [
            asyncio.create_task(self._call_handler(reg.handler, event))
            for reg in self._handlers
            if reg.event_types is None or event_type in reg.event_types
        ]
        if not tasks:
            return []

        results = await asyncio.gather(*tasks, return_exceptions=True)
        return [r for r in results if isinstance(r, Exception)]

    async def _call_handler(self, handler: AsyncEventHandler, event: DomainEvent) -> None:
        """Call handler with error logging."""
        try:
            await handler(event)
        except Exception:
            logger.exception("Handler %s failed for event %s", handler, event.event_type)
            raise
