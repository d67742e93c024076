"""
Document Service - Orchestration facade (main interface).

Composes the focused services into the operations the API exposes:
- upload_document / replace_document / delete_document (ReplacementCoordinator)
- upload_documents: several slots in one request, each slot independent
- get_document / list_documents (AccessGrantIssuer)

Audit events are emitted only after a change has committed.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from app.core.exceptions import DocumentVaultError
from app.models.document import DocumentRecord, SlotType
from app.services.audit_service import AuditAction, AuditContext, AuditEvent, AuditService

from .document_access_service import AccessGrant, AccessGrantIssuer
from .document_base_service import DocumentBaseService, IncomingFile, SlotTransition
from .document_replacement_service import ReplacementCoordinator


@dataclass(frozen=True)
class BatchItemResult:
    slot_type: SlotType
    document: Optional[DocumentRecord] = None
    error_code: Optional[str] = None
    message: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.document is not None


class DocumentService(DocumentBaseService):
    """Facade over the document services."""

    def __init__(
        self,
        coordinator: ReplacementCoordinator,
        issuer: AccessGrantIssuer,
        audit: AuditService,
    ):
        super().__init__()
        self.coordinator = coordinator
        self.issuer = issuer
        self.audit = audit

    @property
    def max_file_size(self) -> int:
        """Largest upload, in bytes, the validator accepts."""
        return self.coordinator.validator.max_file_size

    async def upload_document(
        self,
        owner_id: str,
        slot_type: Optional[SlotType],
        file: IncomingFile,
        context: Optional[AuditContext] = None,
    ) -> DocumentRecord:
        transition = await self.coordinator.upload(owner_id, slot_type, file)
        self._emit(owner_id, slot_type, transition, context)
        return transition.current

    async def replace_document(
        self,
        owner_id: str,
        slot_type: SlotType,
        file: IncomingFile,
        context: Optional[AuditContext] = None,
    ) -> DocumentRecord:
        transition = await self.coordinator.replace(owner_id, slot_type, file)
        self._emit(owner_id, slot_type, transition, context)
        return transition.current

    async def upload_documents(
        self,
        owner_id: str,
        files: Dict[SlotType, IncomingFile],
        context: Optional[AuditContext] = None,
    ) -> List[BatchItemResult]:
        """Upload several slots; a failure in one slot does not affect the others."""
        results = []
        for slot_type, file in files.items():
            try:
                record = await self.upload_document(owner_id, slot_type, file, context)
                results.append(BatchItemResult(slot_type=slot_type, document=record))
            except DocumentVaultError as e:
                self.logger.warning(
                    "Batch upload item failed",
                    owner_id=owner_id,
                    slot_type=slot_type.value,
                    error_code=e.error_code,
                    details=e.details,
                )
                results.append(
                    BatchItemResult(
                        slot_type=slot_type, error_code=e.error_code, message=e.message
                    )
                )
        return results

    async def get_document(self, owner_id: str, slot_type: SlotType) -> AccessGrant:
        return await self.issuer.get(owner_id, slot_type)

    async def list_documents(self, owner_id: str) -> List[AccessGrant]:
        return await self.issuer.list(owner_id)

    async def delete_document(
        self,
        owner_id: str,
        slot_type: SlotType,
        context: Optional[AuditContext] = None,
    ) -> DocumentRecord:
        """Delete the slot's Active document; returns the now-DELETED record."""
        transition = await self.coordinator.delete(owner_id, slot_type)
        self._emit(owner_id, slot_type, transition, context)
        return transition.previous

    def _emit(
        self,
        owner_id: str,
        slot_type: SlotType,
        transition: SlotTransition,
        context: Optional[AuditContext],
    ) -> None:
        previous, current = transition.previous, transition.current
        if current is None:
            action = AuditAction.DELETE
        elif previous is None:
            action = AuditAction.UPLOAD
        else:
            action = AuditAction.REPLACE

        context = context or AuditContext()
        self.audit.emit(
            AuditEvent(
                action=action,
                owner_id=owner_id,
                slot_type=slot_type.value,
                old_key=previous.storage_key if previous else None,
                new_key=current.storage_key if current else None,
                document_id=current.id if current else previous.id,
                previous_document_id=previous.id if previous else None,
                actor_id=context.actor_id or owner_id,
                ip_address=context.ip_address,
                user_agent=context.user_agent,
            )
        )
