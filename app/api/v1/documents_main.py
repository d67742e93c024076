"""
Document API Router.

Aggregates the document sub-routers:

- document_upload.py: upload, replace and batch upload
- document_management.py: list, get and delete
- common.py: shared utilities and dependencies
"""

from fastapi import APIRouter

from app.api.v1.documents_modules.document_management import router as management_router
from app.api.v1.documents_modules.document_upload import router as upload_router

router = APIRouter()

# Order matters: /{owner_id}/batch must be registered before /{owner_id}/{slot_type}
router.include_router(
    upload_router,
    tags=["Document Upload"],
)

router.include_router(
    management_router,
    tags=["Document Management"],
)
