"""
Document upload endpoints.

This module handles the operations that write a document into a slot:
- Single upload into the slot named by the ``slot_type`` form field
- Replacement of the document in the slot named by the path
- Batch upload of several slots in one multipart request
"""

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile, status

from app.api.v1.audit_context import extract_audit_context
from app.core.exceptions import FileTooLargeError, MissingFileError
from app.core.security import Principal, authorize_owner
from app.models.document import SlotType
from app.models.schemas import (
    BatchItemError,
    BatchUploadItem,
    BatchUploadResponse,
    DocumentResponse,
    DocumentUploadResponse,
    error_responses,
)
from app.services.document import (
    BatchItemResult,
    DocumentService,
    IncomingFile,
    parse_slot_type,
)

from .common import (
    get_document_service,
    log_operation_start,
    log_operation_success,
    logger,
    read_incoming_file,
)

router = APIRouter()

# Multipart field name for each slot in a batch upload
BATCH_FIELDS = {
    "primary_id": SlotType.PRIMARY_ID,
    "education_cert": SlotType.EDUCATION_CERT,
    "portrait": SlotType.PORTRAIT,
}


@router.post(
    "/{owner_id}",
    response_model=DocumentUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload Document",
    operation_id="uploadDocument",
    description="""Upload an identity document into one of the owner's slots.

If the slot already holds a document it is superseded atomically: readers
see either the old or the new document, never neither.

**Form fields:**
- **file**: JPEG, PNG or PDF, at most 2 MiB; the extension must match the type
- **slot_type**: `PRIMARY_ID`, `EDUCATION_CERT` or `PORTRAIT`

**Example Request:**
```bash
curl -X POST "http://localhost:8000/api/v1/documents/user-123" \\
  -H "Authorization: Bearer <token>" \\
  -F "file=@passport.pdf;type=application/pdf" \\
  -F "slot_type=PRIMARY_ID"
```""",
    responses=error_responses(400, 401, 403, 409, 413, 415, 422, 500, 502, 504),
)
async def upload_document(
    owner_id: str,
    request: Request,
    slot_type: Optional[str] = Form(None, description="Slot to store the document in"),
    file: Optional[UploadFile] = File(None, description="Document file (max 2 MiB)"),
    principal: Principal = Depends(authorize_owner),
    service: DocumentService = Depends(get_document_service),
):
    # Slot is checked before the file body is read
    slot = parse_slot_type(slot_type)

    log_operation_start(
        "Document upload",
        owner_id=owner_id,
        slot_type=slot.value,
        file_name=file.filename if file else None,
        actor_id=principal.subject,
    )
    incoming = await read_incoming_file(file, service.max_file_size)

    record = await service.upload_document(
        owner_id, slot, incoming, extract_audit_context(request, principal)
    )

    log_operation_success(
        "Document upload", owner_id=owner_id, slot_type=slot.value, document_id=record.id
    )
    return DocumentUploadResponse(
        success=True,
        message="Document uploaded successfully",
        document=DocumentResponse.from_record(record),
    )


@router.put(
    "/{owner_id}/{slot_type}",
    response_model=DocumentUploadResponse,
    summary="Replace Document",
    operation_id="replaceDocument",
    description="""Replace the document in a slot.

The previous document remains readable until the new one has been stored
and committed; its stored bytes are removed afterwards. Replacing an empty
slot behaves like an upload.""",
    responses=error_responses(400, 401, 403, 409, 413, 415, 422, 500, 502, 504),
)
async def replace_document(
    owner_id: str,
    slot_type: str,
    request: Request,
    file: Optional[UploadFile] = File(None, description="Replacement file (max 2 MiB)"),
    principal: Principal = Depends(authorize_owner),
    service: DocumentService = Depends(get_document_service),
):
    slot = parse_slot_type(slot_type)

    log_operation_start(
        "Document replace",
        owner_id=owner_id,
        slot_type=slot.value,
        file_name=file.filename if file else None,
        actor_id=principal.subject,
    )
    incoming = await read_incoming_file(file, service.max_file_size)

    record = await service.replace_document(
        owner_id, slot, incoming, extract_audit_context(request, principal)
    )

    log_operation_success(
        "Document replace", owner_id=owner_id, slot_type=slot.value, document_id=record.id
    )
    return DocumentUploadResponse(
        success=True,
        message="Document replaced successfully",
        document=DocumentResponse.from_record(record),
    )


@router.post(
    "/{owner_id}/batch",
    response_model=BatchUploadResponse,
    summary="Upload Several Documents",
    operation_id="uploadDocuments",
    description="""Upload documents into several slots at once.

Each slot is processed independently; one slot failing does not roll back
the others.

**Form fields (at least one):** `primary_id`, `education_cert`, `portrait`

**Status codes:**
- **200**: every submitted slot succeeded
- **207**: some slots succeeded, some failed
- **400**: every submitted slot failed""",
    responses={
        207: {"model": BatchUploadResponse, "description": "Partial success"},
        **error_responses(400, 401, 403),
    },
)
async def upload_documents(
    owner_id: str,
    request: Request,
    response: Response,
    primary_id: Optional[UploadFile] = File(None),
    education_cert: Optional[UploadFile] = File(None),
    portrait: Optional[UploadFile] = File(None),
    principal: Principal = Depends(authorize_owner),
    service: DocumentService = Depends(get_document_service),
):
    parts = {"primary_id": primary_id, "education_cert": education_cert, "portrait": portrait}
    submitted = {name: part for name, part in parts.items() if part is not None}
    if not submitted:
        raise MissingFileError(
            "No files uploaded",
            public_details={"accepted_fields": list(BATCH_FIELDS)},
        )

    log_operation_start(
        "Batch document upload",
        owner_id=owner_id,
        fields=list(submitted),
        actor_id=principal.subject,
    )

    files: Dict[SlotType, IncomingFile] = {}
    rejected: List[BatchItemResult] = []
    for name, part in submitted.items():
        slot = BATCH_FIELDS[name]
        try:
            files[slot] = await read_incoming_file(part, service.max_file_size)
        except FileTooLargeError as e:
            logger.warning(
                "Batch upload item rejected before reading",
                owner_id=owner_id,
                slot_type=slot.value,
                actual_bytes=e.actual_bytes,
            )
            rejected.append(
                BatchItemResult(slot_type=slot, error_code=e.error_code, message=e.message)
            )

    results = rejected + await service.upload_documents(
        owner_id, files, extract_audit_context(request, principal)
    )
    order = list(BATCH_FIELDS.values())
    results.sort(key=lambda result: order.index(result.slot_type))

    items = [
        BatchUploadItem(
            slot_type=result.slot_type,
            success=result.success,
            document=DocumentResponse.from_record(result.document) if result.success else None,
            error=None
            if result.success
            else BatchItemError(code=result.error_code, message=result.message),
        )
        for result in results
    ]
    uploaded = sum(1 for item in items if item.success)
    failed = len(items) - uploaded

    if failed == 0:
        message = "All documents uploaded successfully"
    elif uploaded == 0:
        response.status_code = status.HTTP_400_BAD_REQUEST
        message = "All document uploads failed"
    else:
        response.status_code = status.HTTP_207_MULTI_STATUS
        message = "Some documents uploaded successfully, some failed"

    log_operation_success(
        "Batch document upload", owner_id=owner_id, uploaded=uploaded, failed=failed
    )
    return BatchUploadResponse(
        success=uploaded > 0,
        message=message,
        uploaded_count=uploaded,
        failed_count=failed,
        results=items,
    )
