"""
Document services package.

Each service has a single responsibility:
- document_base_service: shared logging, timeouts and value types
- document_validation_service: pure checks on uploads, content-scan hook
- document_catalog_service: metadata records and atomic slot transitions
- document_replacement_service: blob write + catalog swap + compensation
- document_access_service: signed URL issuance
- document_service: orchestration facade (main interface)
"""

from .document_access_service import AccessGrant, AccessGrantIssuer
from .document_base_service import IncomingFile, SlotTransition
from .document_catalog_service import DocumentCatalog
from .document_replacement_service import ReplacementCoordinator
from .document_service import BatchItemResult, DocumentService
from .document_validation_service import (
    ContentScanner,
    DocumentValidator,
    ScanResult,
    parse_slot_type,
)

__all__ = [
    "AccessGrant",
    "AccessGrantIssuer",
    "BatchItemResult",
    "ContentScanner",
    "DocumentCatalog",
    "DocumentService",
    "DocumentValidator",
    "IncomingFile",
    "ReplacementCoordinator",
    "ScanResult",
    "SlotTransition",
    "parse_slot_type",
]
