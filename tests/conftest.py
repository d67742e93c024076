"""
Pytest configuration and fixtures for the test suite.

This module provides shared fixtures for unit and integration tests:
- an in-memory blob store standing in for Google Cloud Storage
- the real document catalog on a temporary SQLite database
- the composed document services and a FastAPI app wired to them
"""

import os
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncGenerator, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

import jwt
import pytest
import pytest_asyncio
from faker import Faker
from httpx import ASGITransport, AsyncClient

# Set test environment before importing app modules
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-testing-purposes-only-32chars")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("GCS_BUCKET_NAME", "test-bucket")
os.environ.setdefault("GCP_PROJECT_ID", "test-project")

from app.core.blob_store import DEFAULT_SIGNED_URL_TTL_SECONDS, BlobStore, SignedUrl  # noqa: E402

fake = Faker()

TEST_BUCKET = "test-bucket"
TEST_JWT_SECRET = os.environ["JWT_SECRET_KEY"]


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (real catalog)")
    config.addinivalue_line("markers", "api: API endpoint tests")
    config.addinivalue_line("markers", "slow: Slow running tests")


# =============================================================================
# Fakes
# =============================================================================

class InMemoryBlobStore(BlobStore):
    """BlobStore keeping objects in a dict.

    Signed URLs carry an expiry and a token and can be resolved back to the
    stored bytes with ``resolve``. Failures are injected by setting
    ``put_error``, ``sign_error`` or ``delete_error`` to an exception
    instance; ``put_hook`` runs after a successful write.
    """

    def __init__(self):
        self.objects: Dict[Tuple[str, str], Tuple[bytes, str]] = {}
        self.put_error: Optional[Exception] = None
        self.sign_error: Optional[Exception] = None
        self.delete_error: Optional[Exception] = None
        self.put_hook = None
        self.healthy = True
        self.deleted: List[str] = []
        self._tokens: Dict[str, Tuple[str, str, datetime]] = {}

    async def put(self, container: str, key: str, data: bytes, content_type: str) -> None:
        if self.put_error is not None:
            raise self.put_error
        if (container, key) in self.objects:
            from app.core.exceptions import StorageWriteFailedError

            raise StorageWriteFailedError(details={"key": key, "reason": "exists"})
        self.objects[(container, key)] = (data, content_type)
        if self.put_hook is not None:
            await self.put_hook(container, key)

    async def signed_url(
        self, container: str, key: str, ttl_seconds: int = DEFAULT_SIGNED_URL_TTL_SECONDS
    ) -> SignedUrl:
        if self.sign_error is not None:
            raise self.sign_error
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
        token = secrets.token_urlsafe(16)
        self._tokens[token] = (container, key, expires_at)
        return SignedUrl(
            url=f"https://storage.test/{container}/{key}?expires={int(expires_at.timestamp())}&token={token}",
            expires_at=expires_at,
        )

    async def delete(self, container: str, key: str) -> None:
        if self.delete_error is not None:
            raise self.delete_error
        if self.objects.pop((container, key), None) is not None:
            self.deleted.append(key)

    async def health_check(self, container: str) -> bool:
        return self.healthy

    def resolve(self, url: str, now: Optional[datetime] = None) -> Optional[bytes]:
        """Bytes a signed URL grants access to, or None once expired or gone."""
        token = parse_qs(urlparse(url).query)["token"][0]
        container, key, expires_at = self._tokens[token]
        if (now or datetime.now(timezone.utc)) >= expires_at:
            return None
        stored = self.objects.get((container, key))
        return stored[0] if stored else None

    def keys(self, container: str = TEST_BUCKET) -> List[str]:
        return sorted(key for (c, key) in self.objects if c == container)


class RecordingAuditSink:
    """Audit sink collecting delivered events."""

    def __init__(self):
        self.events = []

    async def write(self, event) -> None:
        self.events.append(event)


# =============================================================================
# Test Data Generators
# =============================================================================

@pytest.fixture
def owner_id() -> str:
    """Random owner identifier."""
    return str(uuid.uuid4())


@pytest.fixture
def pdf_content() -> bytes:
    """Minimal PDF document."""
    return b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n<< /Root 1 0 R >>\n%%EOF"


@pytest.fixture
def png_content() -> bytes:
    """PNG signature followed by filler bytes."""
    return b"\x89PNG\r\n\x1a\n" + fake.binary(length=256)


@pytest.fixture
def jpeg_content() -> bytes:
    """JPEG markers around filler bytes."""
    return b"\xff\xd8\xff\xe0" + fake.binary(length=256) + b"\xff\xd9"


def sized_content(size: int) -> bytes:
    """PDF-looking content of exactly ``size`` bytes."""
    header = b"%PDF-1.4\n"
    return header + b"0" * (size - len(header))


# =============================================================================
# Catalog and Services
# =============================================================================

@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[Any, None]:
    """DatabaseManager on a fresh SQLite file with the catalog schema."""
    from app.core.db_client import DatabaseManager

    db = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    await db.create_tables()
    yield db
    await db.close()


@pytest.fixture
def catalog(database):
    from app.services.document import DocumentCatalog

    return DocumentCatalog(database.session_factory)


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def validator():
    from app.services.document import DocumentValidator

    return DocumentValidator()


@pytest.fixture
def coordinator(validator, blob_store, catalog):
    from app.services.document import ReplacementCoordinator

    return ReplacementCoordinator(validator, blob_store, catalog, container=TEST_BUCKET)


@pytest.fixture
def issuer(blob_store, catalog):
    from app.services.document import AccessGrantIssuer

    return AccessGrantIssuer(blob_store, catalog)


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def audit_service(audit_sink):
    from app.services.audit_service import AuditService

    return AuditService(sink=audit_sink)


@pytest.fixture
def document_service(coordinator, issuer, audit_service):
    from app.services.document import DocumentService

    return DocumentService(coordinator, issuer, audit_service)


# =============================================================================
# Authentication Fixtures
# =============================================================================

def create_token(
    subject: str,
    role: Optional[str] = None,
    expires_in: timedelta = timedelta(hours=1),
    secret: str = TEST_JWT_SECRET,
    **claims,
) -> str:
    """Encode an access token as the identity service would."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "token_type": "access",
        "jti": str(uuid.uuid4()),
        "iat": now,
        "exp": now + expires_in,
        **claims,
    }
    if role is not None:
        payload["role"] = role
    return jwt.encode(payload, secret, algorithm="HS256")


def create_auth_header(token: str) -> Dict[str, str]:
    """Create an authorization header with a bearer token."""
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def owner_headers(owner_id) -> Dict[str, str]:
    return create_auth_header(create_token(owner_id))


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    return create_auth_header(create_token(str(uuid.uuid4()), role="admin"))


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture
def app(database, blob_store, audit_service):
    """FastAPI app with services wired to the test catalog and fake blob store."""
    from app.core.config import settings
    from app.main import build_document_service, create_app

    fastapi_app = create_app()
    fastapi_app.state.db = database
    fastapi_app.state.blob_store = blob_store
    fastapi_app.state.audit = audit_service
    fastapi_app.state.document_service = build_document_service(
        settings, database, blob_store, audit_service
    )
    return fastapi_app


@pytest_asyncio.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for API testing."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client


# Export helper functions
__all__ = [
    "fake",
    "create_auth_header",
    "create_token",
    "sized_content",
    "InMemoryBlobStore",
    "RecordingAuditSink",
]
