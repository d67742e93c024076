"""
Document Replacement Service - Atomic swap of a slot's Active document.

Upload and replace run the same sequence:
1. validate (and scan) the file; a failure has no side effects
2. write the bytes under a brand-new key; a failure leaves the catalog untouched
3. transition the slot in one catalog transaction; a SlotConflict is retried
   once with the blob from step 2, any other failure except a catalog
   timeout deletes that blob
4. after commit, delete the demoted record's blob on a best-effort basis

Delete is the same transition with no replacement. The coordinator holds no
locks: concurrent changes to one slot are arbitrated by the catalog.
"""

from typing import Optional

from app.core.blob_store import BlobStore, generate_storage_key
from app.core.exceptions import (
    CatalogTimeoutError,
    DocumentNotFoundError,
    SlotConflictError,
    StorageTimeoutError,
)
from app.models.document import DocumentRecord, SlotType, generate_id

from .document_base_service import DocumentBaseService, IncomingFile, SlotTransition
from .document_catalog_service import DocumentCatalog
from .document_validation_service import DocumentValidator


class ReplacementCoordinator(DocumentBaseService):
    """Orchestrates blob writes and catalog transitions for one slot."""

    def __init__(
        self,
        validator: DocumentValidator,
        blob_store: BlobStore,
        catalog: DocumentCatalog,
        container: str,
        put_timeout: float = 30.0,
        catalog_timeout: float = 10.0,
        delete_timeout: float = 10.0,
    ):
        super().__init__()
        self.validator = validator
        self.blob_store = blob_store
        self.catalog = catalog
        self.container = container
        self.put_timeout = put_timeout
        self.catalog_timeout = catalog_timeout
        self.delete_timeout = delete_timeout

    async def upload(
        self, owner_id: str, slot_type: Optional[SlotType], file: IncomingFile
    ) -> SlotTransition:
        """Store a document in a slot, superseding whatever was Active there."""
        return await self._store("upload", owner_id, slot_type, file)

    async def replace(
        self, owner_id: str, slot_type: Optional[SlotType], file: IncomingFile
    ) -> SlotTransition:
        """Replace a slot's document. Same guarantees as upload."""
        return await self._store("replace", owner_id, slot_type, file)

    async def delete(self, owner_id: str, slot_type: SlotType) -> SlotTransition:
        """Mark the slot's Active record DELETED and reclaim its blob."""
        context = {"owner_id": owner_id, "slot_type": slot_type.value}

        current = await self._bounded(
            self.catalog.find_active(owner_id, slot_type),
            self.catalog_timeout,
            CatalogTimeoutError,
            "Catalog lookup",
            **context,
        )
        if current is None:
            raise DocumentNotFoundError(details=context)

        transition = await self._transition_with_retry(owner_id, slot_type, None)
        if transition.previous is None:
            # Emptied by a concurrent delete after our lookup
            raise DocumentNotFoundError(details=context)

        await self._reclaim(transition.previous)
        return transition

    async def _store(
        self,
        operation: str,
        owner_id: str,
        slot_type: Optional[SlotType],
        file: IncomingFile,
    ) -> SlotTransition:
        upload = self.validator.validate(file.data, file.mime_type, file.file_name, slot_type)
        self.validator.scan(file.data)

        key = generate_storage_key(owner_id, slot_type, upload.file_name)
        context = {
            "change": operation,
            "owner_id": owner_id,
            "slot_type": slot_type.value,
            "storage_key": key,
        }

        await self._bounded(
            self.blob_store.put(self.container, key, file.data, upload.mime_type),
            self.put_timeout,
            StorageTimeoutError,
            "Blob write",
            **context,
        )

        record = DocumentRecord(
            id=generate_id(),
            owner_id=owner_id,
            slot_type=slot_type,
            file_name=upload.file_name,
            file_size_bytes=upload.size,
            mime_type=upload.mime_type,
            storage_key=key,
            storage_container=self.container,
        )

        try:
            transition = await self._transition_with_retry(owner_id, slot_type, record)
        except CatalogTimeoutError:
            # The commit may still land; deleting the blob could orphan an Active record
            self.logger.warning("Catalog outcome unknown, keeping new blob", **context)
            raise
        except Exception as e:
            await self._discard(key, reason=type(e).__name__, **context)
            raise

        await self._reclaim(transition.previous)
        self.logger.info(
            f"Document {operation} committed",
            document_id=record.id,
            superseded_id=transition.previous.id if transition.previous else None,
            **context,
        )
        return transition

    async def _transition_with_retry(
        self,
        owner_id: str,
        slot_type: SlotType,
        record: Optional[DocumentRecord],
    ) -> SlotTransition:
        try:
            return await self._transition(owner_id, slot_type, record)
        except SlotConflictError:
            self.logger.info(
                "Slot conflict, retrying transition once",
                owner_id=owner_id,
                slot_type=slot_type.value,
            )
        return await self._transition(owner_id, slot_type, record)

    async def _transition(
        self,
        owner_id: str,
        slot_type: SlotType,
        record: Optional[DocumentRecord],
    ) -> SlotTransition:
        return await self._bounded(
            self.catalog.transition_slot(owner_id, slot_type, record),
            self.catalog_timeout,
            CatalogTimeoutError,
            "Catalog transition",
            owner_id=owner_id,
            slot_type=slot_type.value,
        )

    async def _discard(self, key: str, reason: str, **context) -> None:
        """Compensate a failed transition by deleting the blob it would have referenced."""
        try:
            await self._bounded(
                self.blob_store.delete(self.container, key),
                self.delete_timeout,
                StorageTimeoutError,
                "Compensating blob delete",
                **context,
            )
            self.logger.info("Discarded blob of failed transition", reason=reason, **context)
        except Exception as e:
            self.logger.error(
                "Compensating blob delete failed, blob is orphaned",
                reason=reason,
                error=str(e),
                **context,
            )

    async def _reclaim(self, previous: Optional[DocumentRecord]) -> None:
        """Best-effort delete of a demoted record's blob, after commit."""
        if previous is None:
            return
        context = {
            "owner_id": previous.owner_id,
            "slot_type": previous.slot_type.value,
            "document_id": previous.id,
            "storage_key": previous.storage_key,
        }
        try:
            await self._bounded(
                self.blob_store.delete(previous.storage_container, previous.storage_key),
                self.delete_timeout,
                StorageTimeoutError,
                "Old blob delete",
                **context,
            )
        except Exception as e:
            self.logger.warning(
                "Failed to reclaim blob of demoted record, left for sweep",
                error=str(e),
                **context,
            )
