"""
Document Validation Service - Checks on untrusted uploads.

All checks are pure: no I/O, no side effects. In order:
- file present (non-empty bytes and a file name)
- size within the configured maximum (a file of exactly the maximum passes)
- MIME type in the allow-list
- file extension consistent with the MIME type

Content scanning is an extension point. With no scanner configured the
upload is reported as unscanned in the logs, never assumed clean.
"""

import mimetypes
import os
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Protocol, Tuple

from app.core.exceptions import (
    ContentRejectedError,
    FileTooLargeError,
    InvalidFileTypeError,
    InvalidSlotTypeError,
    MissingFileError,
    MissingSlotTypeError,
)
from app.core.logging import get_service_logger
from app.models.document import SlotType

DEFAULT_MAX_FILE_SIZE = 2 * 1024 * 1024

DEFAULT_ALLOWED_MIME_TYPES = ("image/jpeg", "image/png", "application/pdf")

MIME_EXTENSIONS: Dict[str, Tuple[str, ...]] = {
    "image/jpeg": (".jpg", ".jpeg"),
    "image/png": (".png",),
    "application/pdf": (".pdf",),
}


@dataclass(frozen=True)
class ScanResult:
    clean: bool
    reason: Optional[str] = None
    scanned: bool = True

    @classmethod
    def passed(cls) -> "ScanResult":
        return cls(clean=True)

    @classmethod
    def rejected(cls, reason: str) -> "ScanResult":
        return cls(clean=False, reason=reason)

    @classmethod
    def unscanned(cls) -> "ScanResult":
        return cls(clean=True, reason="no content scanner configured", scanned=False)


class ContentScanner(Protocol):
    """Inspects file bytes, e.g. an antivirus bridge."""

    def scan(self, data: bytes) -> ScanResult: ...


@dataclass(frozen=True)
class ValidatedUpload:
    file_name: str
    mime_type: str
    size: int
    extension: str


def normalize_mime_type(mime_type: Optional[str]) -> str:
    """Lower-case a MIME type and drop parameters such as ``; charset=``."""
    if not mime_type:
        return ""
    return mime_type.split(";", 1)[0].strip().lower()


def parse_slot_type(value: Optional[str]) -> SlotType:
    """Parse a slot type discriminator, case-insensitively."""
    if value is None or not str(value).strip():
        raise MissingSlotTypeError()
    try:
        return SlotType(str(value).strip().upper())
    except ValueError:
        raise InvalidSlotTypeError(
            public_details={"allowed_slot_types": [s.value for s in SlotType]},
            details={"slot_type": value},
        )


class DocumentValidator:
    """Validates size and type of an upload against configured limits."""

    def __init__(
        self,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        allowed_mime_types: Iterable[str] = DEFAULT_ALLOWED_MIME_TYPES,
        scanner: Optional[ContentScanner] = None,
    ):
        self.logger = get_service_logger("document")
        self.max_file_size = max_file_size
        self.allowed_mime_types = frozenset(
            normalize_mime_type(m) for m in allowed_mime_types
        )
        self.scanner = scanner

    def validate(
        self,
        data: Optional[bytes],
        mime_type: Optional[str],
        file_name: Optional[str],
        slot_type: Optional[SlotType],
    ) -> ValidatedUpload:
        if slot_type is None:
            raise MissingSlotTypeError()

        display_name = os.path.basename((file_name or "").replace("\\", "/")).strip()
        if not data or not display_name:
            raise MissingFileError(details={"slot_type": slot_type.value})

        size = len(data)
        if size > self.max_file_size:
            raise FileTooLargeError(
                limit_bytes=self.max_file_size,
                actual_bytes=size,
                details={"slot_type": slot_type.value, "file_name": display_name},
            )

        normalized = normalize_mime_type(mime_type)
        allowed = sorted(self.allowed_mime_types)
        if normalized not in self.allowed_mime_types:
            raise InvalidFileTypeError(
                f"File type '{normalized or 'unknown'}' is not allowed",
                public_details={"allowed_types": allowed},
                details={"slot_type": slot_type.value, "mime_type": mime_type},
            )

        extension = os.path.splitext(display_name)[1].lower()
        expected = MIME_EXTENSIONS.get(normalized) or tuple(
            mimetypes.guess_all_extensions(normalized)
        )
        if extension not in expected:
            raise InvalidFileTypeError(
                f"File extension '{extension or 'none'}' does not match type '{normalized}'",
                public_details={"allowed_types": allowed},
                details={
                    "slot_type": slot_type.value,
                    "mime_type": normalized,
                    "file_name": display_name,
                },
            )

        return ValidatedUpload(
            file_name=display_name,
            mime_type=normalized,
            size=size,
            extension=extension,
        )

    def scan(self, data: bytes) -> ScanResult:
        """Run the configured content scanner, raising on rejection."""
        if self.scanner is None:
            self.logger.debug("Content scan skipped, no scanner configured", size=len(data))
            return ScanResult.unscanned()

        result = self.scanner.scan(data)
        if not result.clean:
            self.logger.warning("Upload rejected by content scanner", reason=result.reason)
            raise ContentRejectedError(details={"reason": result.reason})
        return result
