"""
Document Access Service - Time-limited read access to Active documents.

Every request mints a fresh signed URL; nothing is cached, so each grant's
TTL starts when it is issued. The catalog is only read, never changed.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from app.core.blob_store import BlobStore
from app.core.exceptions import (
    CatalogTimeoutError,
    DocumentNotFoundError,
    StorageError,
    StorageTimeoutError,
)
from app.models.document import DocumentRecord, SlotType

from .document_base_service import DocumentBaseService
from .document_catalog_service import DocumentCatalog


@dataclass(frozen=True)
class AccessGrant:
    """A record with the capability URL issued for it.

    ``url`` is None only in listings, when minting failed for that record.
    """

    record: DocumentRecord
    url: Optional[str]
    expires_at: Optional[datetime]


class AccessGrantIssuer(DocumentBaseService):
    """Issues signed URLs for Active documents."""

    def __init__(
        self,
        blob_store: BlobStore,
        catalog: DocumentCatalog,
        ttl_seconds: int = 3600,
        sign_timeout: float = 5.0,
        catalog_timeout: float = 10.0,
    ):
        super().__init__()
        self.blob_store = blob_store
        self.catalog = catalog
        self.ttl_seconds = ttl_seconds
        self.sign_timeout = sign_timeout
        self.catalog_timeout = catalog_timeout

    async def get(self, owner_id: str, slot_type: SlotType) -> AccessGrant:
        context = {"owner_id": owner_id, "slot_type": slot_type.value}
        record = await self._bounded(
            self.catalog.find_active(owner_id, slot_type),
            self.catalog_timeout,
            CatalogTimeoutError,
            "Catalog lookup",
            **context,
        )
        if record is None:
            raise DocumentNotFoundError(details=context)
        return await self._grant(record)

    async def list(self, owner_id: str) -> List[AccessGrant]:
        """One grant per Active record; a record whose URL cannot be minted gets url None."""
        records = await self._bounded(
            self.catalog.find_all_active(owner_id),
            self.catalog_timeout,
            CatalogTimeoutError,
            "Catalog listing",
            owner_id=owner_id,
        )
        return list(await asyncio.gather(*(self._grant_or_empty(r) for r in records)))

    async def _grant(self, record: DocumentRecord) -> AccessGrant:
        signed = await self._bounded(
            self.blob_store.signed_url(
                record.storage_container, record.storage_key, self.ttl_seconds
            ),
            self.sign_timeout,
            StorageTimeoutError,
            "Signed URL mint",
            owner_id=record.owner_id,
            slot_type=record.slot_type.value,
            document_id=record.id,
        )
        return AccessGrant(record=record, url=signed.url, expires_at=signed.expires_at)

    async def _grant_or_empty(self, record: DocumentRecord) -> AccessGrant:
        try:
            return await self._grant(record)
        except StorageError as e:
            self.logger.warning(
                "Could not issue download URL for listed document",
                owner_id=record.owner_id,
                slot_type=record.slot_type.value,
                document_id=record.id,
                error_code=e.error_code,
            )
            return AccessGrant(record=record, url=None, expires_at=None)
