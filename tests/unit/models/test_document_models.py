"""
Unit tests for the document models.

Tests file name sanitization, record immutability and the ORM mapping.
"""

import uuid
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from app.models.document import (
    DocumentRecord,
    DocumentState,
    SlotType,
    sanitize_filename,
)
from app.models.orm import IdentityDocumentModel


class TestSanitizeFilename:
    """Tests for storage-safe file names."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("passport.pdf", "passport.pdf"),
            ("my passport (1).pdf", "my_passport__1_.pdf"),
            ("../../secret.png", "secret.png"),
            ("C:\\scans\\degree.pdf", "degree.pdf"),
            (".hidden.", "hidden"),
            ("...", "unnamed_file"),
            ("", "unnamed_file"),
            (None, "unnamed_file"),
        ],
    )
    def test_sanitize(self, raw, expected):
        assert sanitize_filename(raw) == expected

    @pytest.mark.unit
    def test_long_name_keeps_extension(self):
        result = sanitize_filename("a" * 300 + ".pdf")

        assert len(result) == 200
        assert result.endswith(".pdf")


class TestDocumentRecord:
    """Tests for the immutable record."""

    @pytest.mark.unit
    def test_record_is_frozen(self):
        record = DocumentRecord(
            id=str(uuid.uuid4()),
            owner_id="owner-1",
            slot_type=SlotType.PORTRAIT,
            file_name="me.png",
            file_size_bytes=10,
            mime_type="image/png",
            storage_key="owner-1/PORTRAIT/1-a-me.png",
            storage_container="bucket",
        )

        assert record.is_active
        with pytest.raises(ValidationError):
            record.state = DocumentState.DELETED

    @pytest.mark.unit
    def test_orm_round_trip(self):
        uploaded_at = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        record = DocumentRecord(
            id=str(uuid.uuid4()),
            owner_id="owner-1",
            slot_type=SlotType.EDUCATION_CERT,
            file_name="degree.pdf",
            file_size_bytes=2048,
            mime_type="application/pdf",
            storage_key="owner-1/EDUCATION_CERT/1-a-degree.pdf",
            storage_container="bucket",
            state=DocumentState.SUPERSEDED,
            uploaded_at=uploaded_at,
            state_changed_at=uploaded_at,
        )

        row = IdentityDocumentModel.from_record(record)

        assert row.slot_type == "EDUCATION_CERT"
        assert row.state == "SUPERSEDED"
        assert row.to_record() == record
