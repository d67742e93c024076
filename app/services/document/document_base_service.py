"""
Document Base Service - Shared plumbing for the document services.

Provides:
- The ``document`` service logger
- ``_bounded``: runs one network call under a timeout and classifies an
  expiry as the caller's timeout error
- ``SlotTransition`` and ``IncomingFile`` value types passed between services
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Optional, Type, TypeVar

from app.core.exceptions import DocumentVaultError
from app.core.logging import get_service_logger
from app.models.document import DocumentRecord

T = TypeVar("T")


@dataclass(frozen=True)
class IncomingFile:
    """An upload as received from the transport, before validation."""

    data: Optional[bytes]
    mime_type: Optional[str]
    file_name: Optional[str]

    @property
    def size(self) -> int:
        return len(self.data) if self.data else 0


@dataclass(frozen=True)
class SlotTransition:
    """Outcome of one committed slot change.

    ``previous`` is the record that was Active before the change (now
    Superseded or Deleted); ``current`` is the record that is Active after it.
    """

    previous: Optional[DocumentRecord]
    current: Optional[DocumentRecord]


class DocumentBaseService:
    """Base service with functionality shared across the document services."""

    def __init__(self):
        self.logger = get_service_logger("document")

    async def _bounded(
        self,
        awaitable: Awaitable[T],
        timeout: float,
        timeout_error: Type[DocumentVaultError],
        operation: str,
        **context,
    ) -> T:
        """Await ``awaitable`` for at most ``timeout`` seconds.

        Expiry raises ``timeout_error``; it is never retried here.
        """
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError as e:
            self.logger.error(
                f"{operation} timed out", timeout_seconds=timeout, **context
            )
            raise timeout_error(
                details={"operation": operation, "timeout_seconds": timeout, **context},
                cause=e,
            )
