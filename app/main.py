"""FastAPI Application Entry Point.

Identity document vault built with FastAPI, featuring:
- One current document per owner and slot, replaced atomically
- Document bytes in Google Cloud Storage, metadata in PostgreSQL
- Time-limited signed download URLs
- Bearer-token (JWT) authentication
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.core.blob_store import BlobStore, GCSBlobStore
from app.core.config import Settings, settings
from app.core.db_client import DatabaseManager
from app.core.exceptions import setup_exception_handlers
from app.core.logging import configure_logging, get_logger
from app.core.middleware import setup_cors_middleware, setup_request_context_middleware
from app.services.audit_service import AuditService
from app.services.document import (
    AccessGrantIssuer,
    DocumentCatalog,
    DocumentService,
    DocumentValidator,
    ReplacementCoordinator,
)

# Configure logging first
configure_logging()
logger = get_logger(__name__)


def build_document_service(
    config: Settings,
    db: DatabaseManager,
    blob_store: BlobStore,
    audit: AuditService,
) -> DocumentService:
    """Compose the document services from their collaborators."""
    validator = DocumentValidator(
        max_file_size=config.MAX_FILE_SIZE,
        allowed_mime_types=config.ALLOWED_MIME_TYPES,
    )
    catalog = DocumentCatalog(db.session_factory)
    coordinator = ReplacementCoordinator(
        validator,
        blob_store,
        catalog,
        container=config.GCS_BUCKET_NAME,
        put_timeout=config.BLOB_PUT_TIMEOUT_SECONDS,
        catalog_timeout=config.CATALOG_TIMEOUT_SECONDS,
        delete_timeout=config.BLOB_DELETE_TIMEOUT_SECONDS,
    )
    issuer = AccessGrantIssuer(
        blob_store,
        catalog,
        ttl_seconds=config.SIGNED_URL_TTL_SECONDS,
        sign_timeout=config.SIGNED_URL_TIMEOUT_SECONDS,
        catalog_timeout=config.CATALOG_TIMEOUT_SECONDS,
    )
    return DocumentService(coordinator, issuer, audit)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    # Startup
    logger.info(
        "Starting application",
        project_name=settings.PROJECT_NAME,
        version=settings.VERSION,
        environment=settings.ENVIRONMENT,
        debug=settings.DEBUG,
    )

    startup_tasks = []

    db = DatabaseManager.from_settings(settings)
    if settings.is_development:
        await db.create_tables()
        startup_tasks.append("Database tables created/verified")
    if await db.test_connection():
        startup_tasks.append("Database connected")
    else:
        logger.warning("Database connection test failed")

    blob_store = GCSBlobStore.from_settings(settings)
    startup_tasks.append(f"Blob store configured ({settings.GCS_BUCKET_NAME})")

    audit = AuditService()
    app.state.db = db
    app.state.blob_store = blob_store
    app.state.audit = audit
    app.state.document_service = build_document_service(settings, db, blob_store, audit)
    startup_tasks.append("Document services ready")

    logger.info("Application startup completed", tasks=startup_tasks)

    yield

    # Shutdown
    logger.info("Shutting down application")

    shutdown_tasks = []

    await audit.drain()
    shutdown_tasks.append("Audit events flushed")

    try:
        await db.close()
        shutdown_tasks.append("Database connections closed")
    except Exception as e:
        logger.error("Error closing database", error=str(e))

    logger.info("Application shutdown completed", tasks=shutdown_tasks)


# API Description
API_DESCRIPTION = """# Identity Document Vault API

## Overview
Stores each owner's identity documents, one current document per slot:
`PRIMARY_ID`, `EDUCATION_CERT` and `PORTRAIT`.

## Authentication
`Authorization: Bearer <access_token>`. The token's `sub` must equal the
`owner_id` in the path, unless its `role` is an administrator role.

## Documents
**File Support:** JPEG, PNG, PDF (max 2 MiB)
**Storage:** Google Cloud Storage + PostgreSQL metadata

Errors use a single envelope: `{"error": {"code", "message", "error_id", "details", "path"}}`.
"""


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description=API_DESCRIPTION,
        openapi_url=f"{settings.API_V1_STR}/openapi.json" if settings.DEBUG else None,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    setup_cors_middleware(app)

    # Exception handlers AFTER CORS middleware
    setup_exception_handlers(app)

    setup_request_context_middleware(app)

    from app.api.health import router as health_router
    from app.api.v1.documents_main import router as documents_router

    app.include_router(health_router)
    app.include_router(
        documents_router, prefix=f"{settings.API_V1_STR}/documents", tags=["Documents"]
    )
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
        access_log=True,
    )
