"""Stub document generator for local development and testing.

Replace with an adapter for the real rendering service in production.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable

from settlement_engine.documents.base import DocumentArtifact, DocumentRequest, DocumentType

# Namespace for deterministic document references
DOCUMENT_NAMESPACE = uuid.UUID("6f0b8d2e-4a51-4c3e-9a7d-2f1e5c8b9d40")


class DocumentRenderError(RuntimeError):
    """Raised by the stub for document types configured to fail."""


class StubDocumentGenerator:
    """Stub generator that records requests and returns deterministic refs."""

    provider_name = "document_stub"

    def __init__(
        self,
        base_url: str = "https://documents.local/terminations",
        fail_types: Iterable[DocumentType | str] = (),
    ):
        """Initialize stub generator.

        Args:
            base_url: Prefix of the URLs handed out for rendered documents.
            fail_types: Document types whose generation raises, to exercise
                        failure handling.
        """
        self.base_url = base_url.rstrip("/")
        self.fail_types = {DocumentType(t) for t in fail_types}
        # In-memory tracking for stub
        self.generated: list[DocumentRequest] = []

    async def generate(self, request: DocumentRequest) -> DocumentArtifact:
        if request.document_type in self.fail_types:
            raise DocumentRenderError(f"{request.document_type.value} renderer unavailable")

        self.generated.append(request)
        reference = uuid.uuid5(
            DOCUMENT_NAMESPACE,
            f"{request.termination_case_id}:{request.document_type.value}:{request.version}",
        )
        return DocumentArtifact(
            document_type=request.document_type,
            reference_id=str(reference),
            url=(
                f"{self.base_url}/{request.termination_case_id}/"
                f"{request.document_type.value}/v{request.version}"
            ),
        )
