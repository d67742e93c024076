"""Pydantic schemas for API requests and responses.

- document.py: Document schemas
- errors.py: Error response schemas

Import from this module: `from app.models.schemas import DocumentResponse`
"""

from app.models.document import SlotType

from app.models.schemas.document import (
    BatchItemError,
    BatchUploadItem,
    BatchUploadResponse,
    DocumentDeleteResponse,
    DocumentListResponse,
    DocumentResponse,
    DocumentUploadResponse,
)
from app.models.schemas.errors import APIErrorResponse, ErrorResponse, error_responses

__all__ = [
    "APIErrorResponse",
    "BatchItemError",
    "BatchUploadItem",
    "BatchUploadResponse",
    "DocumentDeleteResponse",
    "DocumentListResponse",
    "DocumentResponse",
    "DocumentUploadResponse",
    "ErrorResponse",
    "SlotType",
    "error_responses",
]
