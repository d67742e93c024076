"""Document request/response schemas.

Responses are serialized in camelCase (``documentId``, ``downloadUrl`` ...).
Storage keys and containers are deliberately absent from every schema.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from app.models.document import DocumentRecord, SlotType


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )


class DocumentResponse(CamelModel):
    """An Active document with a freshly minted download URL."""

    document_id: str = Field(
        ...,
        description="Document unique identifier (UUID)",
        examples=["78258b82-db53-41a3-848a-ce45a32f99c7"],
    )
    slot_type: SlotType = Field(..., description="Slot the document occupies")
    file_name: str = Field(
        ...,
        description="File name as uploaded",
        examples=["passport.pdf"],
    )
    file_size_bytes: int = Field(..., ge=0, examples=[1992294])
    mime_type: str = Field(..., examples=["application/pdf"])
    download_url: Optional[str] = Field(
        None,
        description="Time-limited signed URL; null when it could not be issued",
        examples=["https://storage.googleapis.com/bucket/...&X-Goog-Signature=..."],
    )
    uploaded_at: datetime = Field(..., description="When the document was uploaded")

    @field_serializer("uploaded_at")
    def serialize_datetime(self, value: datetime) -> str:
        """Serialize datetime fields to ISO format."""
        return value.isoformat()

    @classmethod
    def from_record(
        cls, record: DocumentRecord, download_url: Optional[str] = None
    ) -> "DocumentResponse":
        return cls(
            document_id=record.id,
            slot_type=record.slot_type,
            file_name=record.file_name,
            file_size_bytes=record.file_size_bytes,
            mime_type=record.mime_type,
            download_url=download_url,
            uploaded_at=record.uploaded_at,
        )


class DocumentListResponse(CamelModel):
    """One entry per slot the owner currently holds an Active document in."""

    documents: List[DocumentResponse] = Field(default_factory=list)
    count: int = Field(..., ge=0)


class DocumentUploadResponse(CamelModel):
    """Response model for document upload and replace."""

    success: bool = Field(..., examples=[True])
    message: str = Field(..., examples=["Document uploaded successfully"])
    document: DocumentResponse


class DocumentDeleteResponse(CamelModel):
    success: bool = Field(..., examples=[True])
    message: str = Field(..., examples=["Document deleted successfully"])
    slot_type: SlotType


class BatchItemError(CamelModel):
    code: str = Field(..., examples=["FILE_TOO_LARGE"])
    message: str


class BatchUploadItem(CamelModel):
    slot_type: SlotType
    success: bool
    document: Optional[DocumentResponse] = None
    error: Optional[BatchItemError] = None


class BatchUploadResponse(CamelModel):
    """Per-slot outcome of a multi-document upload."""

    success: bool = Field(..., description="True when at least one submitted slot succeeded")
    message: str
    uploaded_count: int = Field(..., ge=0)
    failed_count: int = Field(..., ge=0)
    results: List[BatchUploadItem]
