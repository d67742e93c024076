import re
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

MAX_FILENAME_LENGTH = 200
FALLBACK_FILENAME = "unnamed_file"


class SlotType(str, Enum):
    """Document category an owner can hold one active document for."""

    PRIMARY_ID = "PRIMARY_ID"
    EDUCATION_CERT = "EDUCATION_CERT"
    PORTRAIT = "PORTRAIT"


class DocumentState(str, Enum):
    """Catalog lifecycle state of a document record."""

    ACTIVE = "ACTIVE"
    SUPERSEDED = "SUPERSEDED"  # replaced by a newer upload in the same slot
    DELETED = "DELETED"  # removed with no replacement


class DocumentRecord(BaseModel):
    """Immutable view of one catalog row."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str = Field(..., description="Opaque unique document identifier")
    owner_id: str
    slot_type: SlotType
    file_name: str
    file_size_bytes: int = Field(..., ge=0)
    mime_type: str
    storage_key: str
    storage_container: str
    state: DocumentState = DocumentState.ACTIVE
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    state_changed_at: Optional[datetime] = None

    @field_serializer("uploaded_at", "state_changed_at")
    def serialize_datetime(self, value: Optional[datetime]) -> Optional[str]:
        """Serialize datetime fields to ISO format."""
        return value.isoformat() if value else None

    @property
    def is_active(self) -> bool:
        return self.state == DocumentState.ACTIVE

    def __repr__(self) -> str:
        return (
            f"<DocumentRecord(id={self.id}, owner_id='{self.owner_id}', "
            f"slot_type='{self.slot_type.value}', state='{self.state.value}')>"
        )


def generate_id() -> str:
    """Generate unique document ID."""
    return str(uuid.uuid4())


def sanitize_filename(file_name: Optional[str]) -> str:
    """Reduce a client supplied file name to a storage-safe token.

    Keeps alphanumerics, dots, hyphens and underscores; strips leading and
    trailing dots and caps the length, keeping the extension where possible.
    """
    if not file_name:
        return FALLBACK_FILENAME

    # Drop any client-side directory components
    base = re.split(r"[\\/]", file_name.strip())[-1]
    sanitized = re.sub(r"[^a-zA-Z0-9._-]", "_", base).strip(".")

    if not sanitized:
        return FALLBACK_FILENAME

    if len(sanitized) > MAX_FILENAME_LENGTH:
        stem, dot, ext = sanitized.rpartition(".")
        if dot and stem and len(ext) < 16:
            sanitized = stem[: MAX_FILENAME_LENGTH - len(ext) - 1] + "." + ext
        else:
            sanitized = sanitized[:MAX_FILENAME_LENGTH]

    return sanitized
