"""SQLAlchemy models for the document catalog.

A slot is the (owner_id, slot_type) pair. The partial unique index on
``state = 'ACTIVE'`` guarantees at most one active row per slot; rows are
never hard-deleted so superseded and deleted records remain for audit.
"""

from datetime import timezone

from sqlalchemy import BigInteger, Column, DateTime, Index, String, Text, TypeDecorator
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import text

from app.models.document import DocumentRecord, DocumentState, SlotType


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime on PostgreSQL and SQLite alike.

    SQLite drops tzinfo on the way back, so naive values are read as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


Base = declarative_base()

ACTIVE_ONLY = text("state = 'ACTIVE'")


class IdentityDocumentModel(Base):
    """One uploaded identity document and its lifecycle state."""

    __tablename__ = "identity_documents"
    __table_args__ = (
        Index("ix_identity_documents_owner_id", "owner_id"),
        Index(
            "uq_identity_documents_active_slot",
            "owner_id",
            "slot_type",
            unique=True,
            postgresql_where=ACTIVE_ONLY,
            sqlite_where=ACTIVE_ONLY,
        ),
    )

    id = Column(String(36), primary_key=True)
    owner_id = Column(String(128), nullable=False)
    slot_type = Column(String(32), nullable=False)
    file_name = Column(Text, nullable=False)
    file_size_bytes = Column(BigInteger, nullable=False)
    mime_type = Column(String(128), nullable=False)
    storage_key = Column(Text, nullable=False)
    storage_container = Column(String(255), nullable=False)
    state = Column(String(16), nullable=False, default=DocumentState.ACTIVE.value)
    uploaded_at = Column(UTCDateTime(), nullable=False)
    state_changed_at = Column(UTCDateTime(), nullable=True)

    @classmethod
    def from_record(cls, record: DocumentRecord) -> "IdentityDocumentModel":
        return cls(
            id=record.id,
            owner_id=record.owner_id,
            slot_type=record.slot_type.value,
            file_name=record.file_name,
            file_size_bytes=record.file_size_bytes,
            mime_type=record.mime_type,
            storage_key=record.storage_key,
            storage_container=record.storage_container,
            state=record.state.value,
            uploaded_at=record.uploaded_at,
            state_changed_at=record.state_changed_at,
        )

    def to_record(self) -> DocumentRecord:
        """Detach the row into an immutable domain record."""
        return DocumentRecord(
            id=self.id,
            owner_id=self.owner_id,
            slot_type=SlotType(self.slot_type),
            file_name=self.file_name,
            file_size_bytes=self.file_size_bytes,
            mime_type=self.mime_type,
            storage_key=self.storage_key,
            storage_container=self.storage_container,
            state=DocumentState(self.state),
            uploaded_at=self.uploaded_at,
            state_changed_at=self.state_changed_at,
        )

    def __repr__(self) -> str:
        return (
            f"<IdentityDocumentModel(id={self.id}, owner_id='{self.owner_id}', "
            f"slot_type='{self.slot_type}', state='{self.state}')>"
        )
