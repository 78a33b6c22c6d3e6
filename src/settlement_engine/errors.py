"""Typed exceptions for the settlement engine.

Every exception carries a machine-readable ``code`` so the API layer can map
it to a response without parsing messages.
"""

from __future__ import annotations

from collections.abc import Iterable


class SettlementEngineError(Exception):
    """Base exception for all settlement engine errors."""

    code: str = "SETTLEMENT_ENGINE_ERROR"


class ValidationError(SettlementEngineError):
    """Input is malformed or outside the legal domain.

    Raised before any persisted state is touched.
    """

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class ConflictError(SettlementEngineError):
    """Operation conflicts with the current state of a termination case."""

    code: str = "CONFLICT"


class NotFoundError(SettlementEngineError):
    """Referenced employee, salary history or case does not exist."""

    code: str = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: object | None = None):
        self.entity = entity
        self.entity_id = entity_id
        msg = f"{entity} not found"
        if entity_id is not None:
            msg += f": {entity_id}"
        super().__init__(msg)


class ComputationError(SettlementEngineError):
    """Unexpected failure inside the calculator (e.g. unsupported country)."""

    code: str = "COMPUTATION_ERROR"


class DocumentGenerationError(SettlementEngineError):
    """One or more settlement documents failed to render."""

    code: str = "DOCUMENT_GENERATION_ERROR"

    def __init__(self, failed_types: Iterable[str], details: dict[str, str] | None = None):
        self.failed_types = list(failed_types)
        self.details = details or {}
        parts = []
        for doc_type in self.failed_types:
            reason = self.details.get(doc_type)
            parts.append(f"{doc_type} ({reason})" if reason else doc_type)
        super().__init__(f"Document generation failed: {', '.join(parts)}")
