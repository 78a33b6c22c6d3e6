"""Base protocol and types for settlement document generators.

Rendering is an external concern: a generator returns a reference ID and a
URL for the rendered artifact, never the document content.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from enum import Enum
from typing import Protocol
from uuid import UUID

from settlement_engine.calculators.types import SettlementResult


class DocumentType(str, Enum):
    """Documents issued at the end of an employment contract."""

    WORK_CERTIFICATE = "work_certificate"
    FINAL_PAYSLIP = "final_payslip"
    FUND_ATTESTATION = "fund_attestation"  # Statutory social-fund attestation


# Generation order; progress checkpoints follow it
REQUIRED_DOCUMENTS: tuple[DocumentType, ...] = (
    DocumentType.WORK_CERTIFICATE,
    DocumentType.FINAL_PAYSLIP,
    DocumentType.FUND_ATTESTATION,
)


@dataclass(frozen=True)
class DocumentRequest:
    """Everything a generator needs to render one document."""

    document_type: DocumentType
    termination_case_id: UUID
    tenant_id: UUID
    employee_id: UUID
    version: int
    termination_date: datetime.date
    result: SettlementResult
    issuer: str | None = None
    pay_date: datetime.date | None = None


@dataclass(frozen=True)
class DocumentArtifact:
    """Reference to a rendered document."""

    document_type: DocumentType
    reference_id: str
    url: str | None = None


class DocumentGenerator(Protocol):
    """Protocol for document rendering adapters.

    Implementations must be idempotent per (case, document type, version):
    re-rendering the same version returns the same reference.
    """

    async def generate(self, request: DocumentRequest) -> DocumentArtifact:
        """Render a document, raising on failure."""
        ...
