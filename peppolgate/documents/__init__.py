"""Document classification and validation."""

from peppolgate.documents.classifier import (
    ClassifiedDocument,
    detect_document_type,
    parse_document,
)
from peppolgate.documents.validation import ValidationClient, enforce_validation_policy

__all__ = [
    "ClassifiedDocument",
    "ValidationClient",
    "detect_document_type",
    "enforce_validation_policy",
    "parse_document",
]
