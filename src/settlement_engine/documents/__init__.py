"""Settlement document generation."""

from settlement_engine.documents.base import (
    REQUIRED_DOCUMENTS,
    DocumentArtifact,
    DocumentGenerator,
    DocumentRequest,
    DocumentType,
)
from settlement_engine.documents.stub import StubDocumentGenerator

__all__ = [
    "REQUIRED_DOCUMENTS",
    "DocumentArtifact",
    "DocumentGenerator",
    "DocumentRequest",
    "DocumentType",
    "StubDocumentGenerator",
]
