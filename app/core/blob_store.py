"""Blob store client for document bytes.

``BlobStore`` is the contract the document services depend on; ``GCSBlobStore``
implements it on Google Cloud Storage. Keys are generated by
``generate_storage_key`` and written with ``if_generation_match=0``, so an
existing object is never overwritten and a superseded blob stays addressable
until it is explicitly deleted.

The GCS client is blocking; calls run in worker threads. Bounded timeouts are
applied by the callers, which know which budget each call belongs to.
"""

import asyncio
import os
import re
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import google.auth.exceptions
from google.api_core.exceptions import Forbidden, GoogleAPIError, NotFound, Unauthorized
from google.auth.credentials import Signing
from google.auth.transport import requests as auth_requests
from google.cloud import storage

from app.core.config import Settings
from app.core.exceptions import (
    SignedUrlFailedError,
    StorageAccessDeniedError,
    StorageWriteFailedError,
)
from app.core.logging import get_service_logger
from app.models.document import SlotType, sanitize_filename

logger = get_service_logger("blob_store")

DEFAULT_SIGNED_URL_TTL_SECONDS = 3600

# Checked before _STORAGE_FAILURES; Forbidden is itself a GoogleAPIError
_ACCESS_DENIED = (
    Forbidden,
    Unauthorized,
    google.auth.exceptions.DefaultCredentialsError,
    google.auth.exceptions.RefreshError,
)
_STORAGE_FAILURES = (GoogleAPIError, google.auth.exceptions.TransportError, OSError)


@dataclass(frozen=True)
class SignedUrl:
    """Time-limited read capability for one blob."""

    url: str
    expires_at: datetime


def generate_storage_key(
    owner_id: str,
    slot_type: SlotType,
    file_name: str,
    now: Optional[datetime] = None,
    suffix: Optional[str] = None,
) -> str:
    """Build a fresh object key: ``{owner}/{slot}/{unix_ts}-{suffix}-{file_name}``."""
    now = now or datetime.now(timezone.utc)
    suffix = suffix or secrets.token_hex(4)
    owner = re.sub(r"[^a-zA-Z0-9._-]", "_", owner_id).strip(".") or "unknown_owner"
    return f"{owner}/{slot_type.value}/{int(now.timestamp())}-{suffix}-{sanitize_filename(file_name)}"


class BlobStore(ABC):
    """Encrypted object store addressed by container and key."""

    @abstractmethod
    async def put(self, container: str, key: str, data: bytes, content_type: str) -> None:
        """Write a new object. Raises StorageWriteFailedError or StorageAccessDeniedError."""

    @abstractmethod
    async def signed_url(
        self, container: str, key: str, ttl_seconds: int = DEFAULT_SIGNED_URL_TTL_SECONDS
    ) -> SignedUrl:
        """Mint a read-only capability URL for an object."""

    @abstractmethod
    async def delete(self, container: str, key: str) -> None:
        """Delete an object. Deleting a missing key succeeds."""

    @abstractmethod
    async def health_check(self, container: str) -> bool:
        """Whether the container is reachable with the current credentials."""


class GCSBlobStore(BlobStore):
    """Google Cloud Storage implementation of the blob store."""

    def __init__(
        self,
        client: storage.Client,
        kms_key_name: Optional[str] = None,
        signer_email: Optional[str] = None,
    ):
        self.logger = logger
        self._client = client
        self._kms_key_name = kms_key_name
        self._signer_email = signer_email

    @classmethod
    def from_settings(cls, settings: Settings) -> "GCSBlobStore":
        if settings.GOOGLE_APPLICATION_CREDENTIALS:
            os.environ["GOOGLE_APPLICATION_CREDENTIALS"] = (
                settings.GOOGLE_APPLICATION_CREDENTIALS
            )
        client = storage.Client(project=settings.GCP_PROJECT_ID)
        return cls(
            client,
            kms_key_name=settings.GCS_KMS_KEY_NAME,
            signer_email=settings.SIGNED_URL_SERVICE_ACCOUNT,
        )

    def _blob(self, container: str, key: str, **kwargs) -> storage.Blob:
        return self._client.bucket(container).blob(key, **kwargs)

    def _put_sync(self, container: str, key: str, data: bytes, content_type: str) -> None:
        # Without a KMS key the bucket's Google-managed encryption applies
        blob = self._blob(container, key, kms_key_name=self._kms_key_name)
        blob.upload_from_string(data, content_type=content_type, if_generation_match=0)

    async def put(self, container: str, key: str, data: bytes, content_type: str) -> None:
        try:
            await asyncio.to_thread(self._put_sync, container, key, data, content_type)
        except _ACCESS_DENIED as e:
            self.logger.error(
                "Blob store denied write", container=container, key=key, error=str(e)
            )
            raise StorageAccessDeniedError(
                details={"container": container, "key": key}, cause=e
            )
        except _STORAGE_FAILURES as e:
            self.logger.error(
                "Failed to write blob", container=container, key=key, error=str(e)
            )
            raise StorageWriteFailedError(
                details={"container": container, "key": key}, cause=e
            )

        self.logger.info(
            "Blob written",
            container=container,
            key=key,
            size=len(data),
            content_type=content_type,
        )

    def _sign_sync(self, container: str, key: str, expiration: timedelta) -> str:
        blob = self._blob(container, key)
        credentials = self._client._credentials

        if isinstance(credentials, Signing):
            return blob.generate_signed_url(
                version="v4", expiration=expiration, method="GET"
            )

        # Token based credentials (ADC on GCP, user credentials) sign through
        # the IAM signBlob API, which needs an access token and a signer identity
        self.logger.debug(
            "Using IAM signBlob API for signed URL generation",
            credential_type=type(credentials).__name__,
        )
        credentials.refresh(auth_requests.Request())
        signer_email = self._signer_email or getattr(
            credentials, "service_account_email", None
        )
        if not signer_email or signer_email == "default":
            raise StorageAccessDeniedError(
                "Document storage is misconfigured",
                details={
                    "reason": "credentials cannot sign URLs and no signer service account is configured",
                    "credential_type": type(credentials).__name__,
                },
            )
        return blob.generate_signed_url(
            version="v4",
            expiration=expiration,
            method="GET",
            service_account_email=signer_email,
            access_token=credentials.token,
        )

    async def signed_url(
        self, container: str, key: str, ttl_seconds: int = DEFAULT_SIGNED_URL_TTL_SECONDS
    ) -> SignedUrl:
        expiration = timedelta(seconds=ttl_seconds)
        expires_at = datetime.now(timezone.utc) + expiration
        try:
            url = await asyncio.to_thread(self._sign_sync, container, key, expiration)
        except StorageAccessDeniedError:
            raise
        except (Forbidden, Unauthorized, google.auth.exceptions.GoogleAuthError) as e:
            self.logger.error(
                "Blob store denied URL signing", container=container, key=key, error=str(e)
            )
            raise StorageAccessDeniedError(
                details={"container": container, "key": key}, cause=e
            )
        except (GoogleAPIError, OSError) as e:
            self.logger.error(
                "Failed to generate signed URL", container=container, key=key, error=str(e)
            )
            raise SignedUrlFailedError(
                details={"container": container, "key": key}, cause=e
            )

        self.logger.debug(
            "Generated signed URL",
            container=container,
            key=key,
            expires_at=expires_at.isoformat(),
        )
        return SignedUrl(url=url, expires_at=expires_at)

    def _delete_sync(self, container: str, key: str) -> bool:
        try:
            self._blob(container, key).delete()
            return True
        except NotFound:
            return False

    async def delete(self, container: str, key: str) -> None:
        try:
            existed = await asyncio.to_thread(self._delete_sync, container, key)
        except _ACCESS_DENIED as e:
            raise StorageAccessDeniedError(
                details={"container": container, "key": key}, cause=e
            )
        except _STORAGE_FAILURES as e:
            raise StorageWriteFailedError(
                "Failed to delete the stored document",
                details={"container": container, "key": key},
                cause=e,
            )

        if existed:
            self.logger.info("Blob deleted", container=container, key=key)
        else:
            self.logger.debug("Blob already absent", container=container, key=key)

    async def health_check(self, container: str) -> bool:
        try:
            await asyncio.to_thread(self._client.bucket(container).reload)
            return True
        except Exception as e:
            self.logger.error("Blob store health check failed", container=container, error=str(e))
            return False
