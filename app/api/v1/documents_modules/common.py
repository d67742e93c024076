"""
Shared utilities and dependencies for document API endpoints.

This module provides common functionality used across the document router
modules: service lookup, request-to-domain conversion and operation logging.
Errors are not translated here; DocumentVaultError subclasses propagate to
the application exception handlers.
"""

from typing import Optional

from fastapi import Request, UploadFile

from app.core.exceptions import FileTooLargeError, MissingFileError
from app.core.logging import get_api_logger
from app.services.document import DocumentService, IncomingFile

# Shared logger instance
logger = get_api_logger()


def get_document_service(request: Request) -> DocumentService:
    """The DocumentService built by the application lifespan."""
    return request.app.state.document_service


async def read_incoming_file(
    file: Optional[UploadFile], max_file_size: int
) -> IncomingFile:
    """Read an uploaded part into memory.

    The size reported by the multipart parser is checked first so an
    oversized part is rejected without loading its body. At most
    ``max_file_size + 1`` bytes are ever read.

    Raises:
        MissingFileError: If no file part was sent
        FileTooLargeError: If the part exceeds ``max_file_size``
    """
    if file is None:
        raise MissingFileError()

    details = {"file_name": file.filename}
    if file.size is not None and file.size > max_file_size:
        raise FileTooLargeError(
            limit_bytes=max_file_size, actual_bytes=file.size, details=details
        )

    data = await file.read(max_file_size + 1)
    if len(data) > max_file_size:
        raise FileTooLargeError(
            limit_bytes=max_file_size,
            actual_bytes=file.size or len(data),
            details=details,
        )
    return IncomingFile(
        data=data,
        mime_type=file.content_type or "",
        file_name=file.filename or "",
    )


def log_operation_start(operation: str, **context) -> None:
    """Log the start of an operation consistently."""
    logger.info(f"{operation} started", **context)


def log_operation_success(operation: str, **context) -> None:
    """Log successful operation completion consistently."""
    logger.info(f"{operation} completed successfully", **context)
