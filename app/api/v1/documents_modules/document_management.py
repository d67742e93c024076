"""
Document management endpoints.

Read and delete operations on an owner's slots:
- List the owner's Active documents, each with a fresh download URL
- Get one slot's Active document with a fresh download URL
- Delete one slot's Active document
"""

from fastapi import APIRouter, Depends, Request

from app.api.v1.audit_context import extract_audit_context
from app.core.security import Principal, authorize_owner
from app.models.schemas import (
    DocumentDeleteResponse,
    DocumentListResponse,
    DocumentResponse,
    error_responses,
)
from app.services.document import DocumentService, parse_slot_type

from .common import get_document_service, log_operation_start, log_operation_success, logger

router = APIRouter()


@router.get(
    "/{owner_id}",
    response_model=DocumentListResponse,
    summary="List Documents",
    operation_id="listDocuments",
    description="""List the owner's current documents, one per occupied slot.

Every entry carries a download URL minted for this request. If a URL cannot
be issued for one document, that entry is still listed with
`downloadUrl: null`.""",
    responses=error_responses(401, 403, 500, 504),
)
async def list_documents(
    owner_id: str,
    principal: Principal = Depends(authorize_owner),
    service: DocumentService = Depends(get_document_service),
):
    grants = await service.list_documents(owner_id)
    documents = [DocumentResponse.from_record(g.record, g.url) for g in grants]

    missing_urls = sum(1 for d in documents if d.download_url is None)
    if missing_urls:
        logger.warning(
            "Listed documents without download URL",
            owner_id=owner_id,
            count=missing_urls,
        )
    return DocumentListResponse(documents=documents, count=len(documents))


@router.get(
    "/{owner_id}/{slot_type}",
    response_model=DocumentResponse,
    summary="Get Document",
    operation_id="getDocument",
    description="""Get the Active document in a slot with a time-limited
download URL. A new URL is issued on every call.""",
    responses=error_responses(400, 401, 403, 404, 500, 504),
)
async def get_document(
    owner_id: str,
    slot_type: str,
    principal: Principal = Depends(authorize_owner),
    service: DocumentService = Depends(get_document_service),
):
    slot = parse_slot_type(slot_type)
    grant = await service.get_document(owner_id, slot)
    return DocumentResponse.from_record(grant.record, grant.url)


@router.delete(
    "/{owner_id}/{slot_type}",
    response_model=DocumentDeleteResponse,
    summary="Delete Document",
    operation_id="deleteDocument",
    description="""Delete the Active document in a slot.

Deleting an empty slot, including one that was already deleted, returns
`404 DOCUMENT_NOT_FOUND`.""",
    responses=error_responses(400, 401, 403, 404, 409, 500, 504),
)
async def delete_document(
    owner_id: str,
    slot_type: str,
    request: Request,
    principal: Principal = Depends(authorize_owner),
    service: DocumentService = Depends(get_document_service),
):
    slot = parse_slot_type(slot_type)
    log_operation_start(
        "Document delete", owner_id=owner_id, slot_type=slot.value, actor_id=principal.subject
    )

    record = await service.delete_document(
        owner_id, slot, extract_audit_context(request, principal)
    )

    log_operation_success(
        "Document delete", owner_id=owner_id, slot_type=slot.value, document_id=record.id
    )
    return DocumentDeleteResponse(
        success=True,
        message="Document deleted successfully",
        slot_type=slot,
    )
