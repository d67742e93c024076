"""
Document Catalog Service - Relational metadata for identity documents.

The catalog is the only component that changes a record's state. A slot
change happens in one transaction:
- lock and read the slot's Active row (may be none)
- demote it to SUPERSEDED, or DELETED when nothing replaces it
- insert the replacement as ACTIVE

The partial unique index on (owner_id, slot_type) WHERE state = 'ACTIVE' is
the arbiter between concurrent transitions: the loser either blocks behind
the winner's row lock or aborts, and the abort surfaces as SlotConflictError.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import CatalogWriteFailedError, SlotConflictError
from app.models.document import DocumentRecord, DocumentState, SlotType
from app.models.orm import IdentityDocumentModel

from .document_base_service import DocumentBaseService, SlotTransition


class DocumentCatalog(DocumentBaseService):
    """Reads and transitions document records."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        super().__init__()
        self._session_factory = session_factory

    @staticmethod
    def _active_in_slot(owner_id: str, slot_type: SlotType):
        return select(IdentityDocumentModel).where(
            IdentityDocumentModel.owner_id == owner_id,
            IdentityDocumentModel.slot_type == slot_type.value,
            IdentityDocumentModel.state == DocumentState.ACTIVE.value,
        )

    async def find_active(
        self, owner_id: str, slot_type: SlotType
    ) -> Optional[DocumentRecord]:
        """Get the slot's Active record, or None."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(self._active_in_slot(owner_id, slot_type))
                row = result.scalar_one_or_none()
                return row.to_record() if row else None
        except SQLAlchemyError as e:
            self.logger.error(
                "Failed to read active document",
                owner_id=owner_id,
                slot_type=slot_type.value,
                error=str(e),
            )
            raise CatalogWriteFailedError(
                "Failed to read the document catalog",
                details={"operation": "read", "owner_id": owner_id, "slot_type": slot_type.value},
                cause=e,
            )

    async def find_all_active(self, owner_id: str) -> List[DocumentRecord]:
        """All Active records for an owner, at most one per slot."""
        query = (
            select(IdentityDocumentModel)
            .where(
                IdentityDocumentModel.owner_id == owner_id,
                IdentityDocumentModel.state == DocumentState.ACTIVE.value,
            )
            .order_by(IdentityDocumentModel.slot_type)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                return [row.to_record() for row in result.scalars().all()]
        except SQLAlchemyError as e:
            self.logger.error(
                "Failed to list active documents", owner_id=owner_id, error=str(e)
            )
            raise CatalogWriteFailedError(
                "Failed to read the document catalog",
                details={"operation": "read", "owner_id": owner_id},
                cause=e,
            )

    async def find_history(self, owner_id: str, slot_type: SlotType) -> List[DocumentRecord]:
        """Every record ever held in a slot, newest first."""
        query = (
            select(IdentityDocumentModel)
            .where(
                IdentityDocumentModel.owner_id == owner_id,
                IdentityDocumentModel.slot_type == slot_type.value,
            )
            .order_by(IdentityDocumentModel.uploaded_at.desc())
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                return [row.to_record() for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise CatalogWriteFailedError(
                "Failed to read the document catalog",
                details={"operation": "read", "owner_id": owner_id, "slot_type": slot_type.value},
                cause=e,
            )

    async def transition_slot(
        self,
        owner_id: str,
        slot_type: SlotType,
        new_record: Optional[DocumentRecord],
    ) -> SlotTransition:
        """Atomically demote the slot's Active record and activate ``new_record``.

        With ``new_record`` None the Active record becomes DELETED and the slot
        is left empty. Raises SlotConflictError when a concurrent transition
        on the same slot wins, CatalogWriteFailedError on any other failure.
        """
        if new_record is not None and (
            new_record.owner_id != owner_id or new_record.slot_type != slot_type
        ):
            raise ValueError("new_record does not belong to the slot being transitioned")

        context = {"owner_id": owner_id, "slot_type": slot_type.value}
        demoted_state = (
            DocumentState.SUPERSEDED if new_record is not None else DocumentState.DELETED
        )

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        self._active_in_slot(owner_id, slot_type).with_for_update()
                    )
                    current = result.scalar_one_or_none()
                    now = datetime.now(timezone.utc)
                    previous = None

                    if current is not None:
                        demoted = await session.execute(
                            update(IdentityDocumentModel)
                            .where(
                                IdentityDocumentModel.id == current.id,
                                IdentityDocumentModel.state == DocumentState.ACTIVE.value,
                            )
                            .values(state=demoted_state.value, state_changed_at=now)
                        )
                        if demoted.rowcount != 1:
                            # Another transaction demoted it between our read and write
                            raise SlotConflictError(
                                details={**context, "document_id": current.id}
                            )
                        previous = current.to_record().model_copy(
                            update={"state": demoted_state, "state_changed_at": now}
                        )

                    activated = None
                    if new_record is not None:
                        activated = new_record.model_copy(
                            update={"state": DocumentState.ACTIVE, "state_changed_at": None}
                        )
                        session.add(IdentityDocumentModel.from_record(activated))
                        await session.flush()

        except SlotConflictError:
            self.logger.info("Slot transition lost a race", **context)
            raise
        except IntegrityError as e:
            self.logger.info("Slot transition conflicted", error=str(e.orig), **context)
            raise SlotConflictError(details=context, cause=e)
        except SQLAlchemyError as e:
            self.logger.error("Slot transition failed", error=str(e), **context)
            raise CatalogWriteFailedError(details=context, cause=e)

        self.logger.info(
            "Slot transition committed",
            previous_id=previous.id if previous else None,
            previous_state=previous.state.value if previous else None,
            current_id=activated.id if activated else None,
            **context,
        )
        return SlotTransition(previous=previous, current=activated)
