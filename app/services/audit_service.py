"""
Audit Service - Non-blocking audit event delivery.

Design principles:
- Non-blocking: ``emit`` schedules delivery and returns immediately
- Never raises: audit failures must NEVER fail the main operation
- Pluggable: events go to an ``AuditSink``; the default writes them to the
  ``audit`` structured logger, persistence is left to the sink
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Protocol, Set

from pydantic import BaseModel, ConfigDict, Field

from app.core.logging import get_audit_logger, get_service_logger

logger = get_service_logger("audit")


class AuditAction(str, Enum):
    UPLOAD = "UPLOAD"
    REPLACE = "REPLACE"
    DELETE = "DELETE"


class AuditContext(BaseModel):
    """Who performed a change, and from where."""

    model_config = ConfigDict(frozen=True)

    actor_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditEvent(BaseModel):
    """Descriptor of one committed document change."""

    model_config = ConfigDict(frozen=True)

    action: AuditAction
    owner_id: str
    slot_type: str
    old_key: Optional[str] = None
    new_key: Optional[str] = None
    document_id: Optional[str] = None
    previous_document_id: Optional[str] = None
    actor_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AuditSink(Protocol):
    async def write(self, event: AuditEvent) -> None: ...


class LoggingAuditSink:
    """Writes audit events as structured log lines."""

    def __init__(self):
        self.logger = get_audit_logger()

    async def write(self, event: AuditEvent) -> None:
        self.logger.info("audit_event", **event.model_dump(mode="json"))


class AuditService:
    """Fire-and-forget audit event emitter."""

    def __init__(self, sink: Optional[AuditSink] = None):
        self.logger = logger
        self.sink = sink or LoggingAuditSink()
        self._pending: Set[asyncio.Task] = set()

    def emit(self, event: AuditEvent) -> None:
        """Schedule delivery of ``event`` without waiting for it.

        This method should NEVER raise exceptions to the caller.
        """
        try:
            task = asyncio.get_running_loop().create_task(self._deliver(event))
        except RuntimeError as e:
            self.logger.error(
                "No running loop, audit event dropped",
                action=event.action.value,
                owner_id=event.owner_id,
                error=str(e),
            )
            return
        # Keep a strong reference until the task finishes
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, event: AuditEvent) -> None:
        try:
            await self.sink.write(event)
        except Exception as e:
            self.logger.error(
                "Failed to deliver audit event",
                action=event.action.value,
                owner_id=event.owner_id,
                slot_type=event.slot_type,
                error=str(e),
                error_type=type(e).__name__,
            )

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait for in-flight deliveries, e.g. at shutdown."""
        if not self._pending:
            return
        done, pending = await asyncio.wait(set(self._pending), timeout=timeout)
        if pending:
            self.logger.warning("Audit deliveries still pending at drain", count=len(pending))
