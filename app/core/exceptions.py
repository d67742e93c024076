"""Error taxonomy for the document vault and its FastAPI exception handlers.

Every domain error carries two kinds of context:
- ``details``: internal context (owner id, slot type, storage key, cause),
  written to logs only
- ``public_details``: the subset a caller is allowed to see

Error responses never include storage keys, container names or internal paths.
"""

import traceback
import uuid
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


class DocumentVaultError(Exception):
    """Base exception for the document vault."""

    error_code = "INTERNAL_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable = False
    default_message = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        public_details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        self.message = message or self.default_message
        self.details = dict(details or {})
        self.public_details = dict(public_details or {})
        if cause is not None:
            self.details.setdefault("cause", f"{type(cause).__name__}: {cause}")
        super().__init__(self.message)


# Validation errors: caller-correctable, never retried
class DocumentValidationError(DocumentVaultError):
    """Upload rejected before any side effect."""

    error_code = "VALIDATION_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST


class MissingFileError(DocumentValidationError):
    error_code = "MISSING_FILE"
    default_message = "A file is required"


class FileTooLargeError(DocumentValidationError):
    error_code = "FILE_TOO_LARGE"
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    default_message = "File exceeds the maximum allowed size"

    def __init__(self, limit_bytes: int, actual_bytes: int, **kwargs):
        self.limit_bytes = limit_bytes
        self.actual_bytes = actual_bytes
        super().__init__(
            f"File size {actual_bytes} bytes exceeds the limit of {limit_bytes} bytes",
            public_details={"limit_bytes": limit_bytes, "actual_bytes": actual_bytes},
            **kwargs,
        )


class InvalidFileTypeError(DocumentValidationError):
    error_code = "INVALID_FILE_TYPE"
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    default_message = "File type is not allowed"


class MissingSlotTypeError(DocumentValidationError):
    error_code = "MISSING_SLOT_TYPE"
    default_message = "Document slot type is required"


class InvalidSlotTypeError(DocumentValidationError):
    error_code = "INVALID_SLOT_TYPE"
    default_message = "Unknown document slot type"


class ContentRejectedError(DocumentValidationError):
    error_code = "CONTENT_REJECTED"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "File content was rejected"


# Storage errors
class StorageError(DocumentVaultError):
    """Blob store failure."""

    error_code = "STORAGE_ERROR"
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Document storage is unavailable"


class StorageWriteFailedError(StorageError):
    error_code = "STORAGE_WRITE_FAILED"
    retryable = True
    default_message = "Failed to store the document"


class SignedUrlFailedError(StorageError):
    error_code = "SIGNED_URL_FAILED"
    retryable = True
    default_message = "Failed to issue a download link"


class StorageAccessDeniedError(StorageError):
    error_code = "STORAGE_ACCESS_DENIED"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Document storage is misconfigured"


class StorageTimeoutError(StorageError):
    error_code = "STORAGE_TIMEOUT"
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    retryable = True
    default_message = "Document storage did not respond in time"


# Catalog errors
class CatalogError(DocumentVaultError):
    """Document catalog failure."""

    error_code = "CATALOG_ERROR"
    default_message = "Document catalog is unavailable"


class SlotConflictError(CatalogError):
    error_code = "SLOT_CONFLICT"
    status_code = status.HTTP_409_CONFLICT
    retryable = True
    default_message = "Another change to this document slot is in progress"


class CatalogWriteFailedError(CatalogError):
    error_code = "CATALOG_WRITE_FAILED"
    default_message = "Failed to record the document"


class CatalogTimeoutError(CatalogError):
    error_code = "CATALOG_TIMEOUT"
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    retryable = True
    default_message = "Document catalog did not respond in time"


class DocumentNotFoundError(DocumentVaultError):
    error_code = "DOCUMENT_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "No active document for this slot"


# Authentication collaborator
class AuthenticationError(DocumentVaultError):
    error_code = "AUTHENTICATION_ERROR"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid or expired token"


class AuthorizationError(DocumentVaultError):
    error_code = "AUTHORIZATION_ERROR"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not allowed to act on this owner's documents"


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "INTERNAL_ERROR",
    details: Optional[Dict[str, Any]] = None,
    error_id: Optional[str] = None,
    request_path: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Create standardized error response."""

    error_id = error_id or str(uuid.uuid4())[:8]

    error_response = {
        "error": {
            "code": error_code,
            "message": message,
            "error_id": error_id,
        }
    }

    if details:
        error_response["error"]["details"] = details

    if request_path:
        error_response["error"]["path"] = request_path

    return JSONResponse(status_code=status_code, content=error_response, headers=headers)


async def document_vault_exception_handler(
    request: Request, exc: DocumentVaultError
) -> JSONResponse:
    """Handle domain exceptions: log internal context, answer with public context."""
    error_id = str(uuid.uuid4())[:8]

    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Application exception occurred",
        error_code=exc.error_code,
        message=exc.message,
        details=exc.details,
        retryable=exc.retryable,
        path=request.url.path,
        method=request.method,
        error_id=error_id,
    )

    details = dict(exc.public_details)
    if exc.retryable:
        details["retryable"] = True

    headers = None
    if isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}

    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
        details=details,
        error_id=error_id,
        request_path=str(request.url.path),
        headers=headers,
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Handle HTTP exceptions raised by FastAPI and Starlette."""
    error_id = str(uuid.uuid4())[:8]

    logger.warning(
        "HTTP exception occurred",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method,
        error_id=error_id,
    )

    return create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code="HTTP_ERROR",
        error_id=error_id,
        request_path=str(request.url.path),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request validation errors."""
    error_id = str(uuid.uuid4())[:8]

    logger.warning(
        "Validation exception occurred",
        errors=exc.errors(),
        path=request.url.path,
        method=request.method,
        error_id=error_id,
    )

    # Raw inputs are not echoed back; they may be file bytes
    formatted_errors = [
        {
            "field": ".".join(str(x) for x in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Request validation failed",
        error_code="VALIDATION_ERROR",
        details={"validation_errors": formatted_errors},
        error_id=error_id,
        request_path=str(request.url.path),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other unhandled exceptions."""
    error_id = str(uuid.uuid4())[:8]

    logger.error(
        "Unhandled exception occurred",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        error_id=error_id,
        exc_info=True,
    )

    if settings.is_development:
        details = {
            "error_type": type(exc).__name__,
            "traceback": traceback.format_exc().split("\n"),
        }
    else:
        details = None

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred",
        error_code="INTERNAL_ERROR",
        details=details,
        error_id=error_id,
        request_path=str(request.url.path),
    )


def setup_exception_handlers(app):
    """Setup all exception handlers for the FastAPI app."""

    app.add_exception_handler(DocumentVaultError, document_vault_exception_handler)

    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.add_exception_handler(Exception, general_exception_handler)
