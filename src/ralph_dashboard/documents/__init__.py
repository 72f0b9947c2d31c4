"""Project documents: allow-listed file access and document generation."""

from .generator import DocumentGenerator, GenerationRequest, parse_documents
from .store import DocumentStore

__all__ = [
    "DocumentGenerator",
    "DocumentStore",
    "GenerationRequest",
    "parse_documents",
]
