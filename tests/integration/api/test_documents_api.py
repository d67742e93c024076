"""
Integration tests for the document endpoints.

Requests go through the FastAPI app wired to the SQLite catalog and the
in-memory blob store.
"""

import pytest
from starlette.datastructures import UploadFile

from app.core.exceptions import StorageWriteFailedError

from conftest import create_auth_header, create_token, sized_content

BASE = "/api/v1/documents"
MIB = 1024 * 1024

RETRIEVAL_FIELDS = {
    "documentId",
    "slotType",
    "fileName",
    "fileSizeBytes",
    "mimeType",
    "downloadUrl",
    "uploadedAt",
}


def pdf_part(size: int = 2048, name: str = "passport.pdf"):
    return (name, sized_content(size), "application/pdf")


@pytest.fixture
def read_sizes(monkeypatch):
    """Sizes of every file part read by the endpoints, by file name."""
    reads = {}
    original_read = UploadFile.read

    async def recording_read(self, size=-1):
        data = await original_read(self, size)
        reads.setdefault(self.filename, []).append(len(data))
        return data

    monkeypatch.setattr(UploadFile, "read", recording_read)
    return reads


async def upload(client, owner_id, headers, slot_type="PRIMARY_ID", size=2048, name="passport.pdf"):
    return await client.post(
        f"{BASE}/{owner_id}",
        headers=headers,
        data={"slot_type": slot_type},
        files={"file": pdf_part(size, name)},
    )


class TestUploadEndpoint:
    """Tests for POST /documents/{owner_id}."""

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_upload_success(self, async_client, owner_id, owner_headers):
        response = await upload(async_client, owner_id, owner_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        document = data["document"]
        assert set(document) == RETRIEVAL_FIELDS
        assert document["slotType"] == "PRIMARY_ID"
        assert document["fileName"] == "passport.pdf"
        assert document["fileSizeBytes"] == 2048
        assert document["downloadUrl"] is None

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_missing_slot_type(self, async_client, owner_id, owner_headers):
        response = await async_client.post(
            f"{BASE}/{owner_id}", headers=owner_headers, files={"file": pdf_part()}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MISSING_SLOT_TYPE"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_unknown_slot_type(self, async_client, owner_id, owner_headers):
        response = await upload(async_client, owner_id, owner_headers, slot_type="PASSPORT")

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_SLOT_TYPE"
        assert "PORTRAIT" in error["details"]["allowed_slot_types"]

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_missing_file(self, async_client, owner_id, owner_headers):
        response = await async_client.post(
            f"{BASE}/{owner_id}", headers=owner_headers, data={"slot_type": "PRIMARY_ID"}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MISSING_FILE"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_file_too_large(self, async_client, owner_id, owner_headers, blob_store):
        response = await upload(async_client, owner_id, owner_headers, size=2 * MIB + 1)

        assert response.status_code == 413
        error = response.json()["error"]
        assert error["code"] == "FILE_TOO_LARGE"
        assert error["details"] == {"limit_bytes": 2 * MIB, "actual_bytes": 2 * MIB + 1}
        assert blob_store.keys() == []

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_oversized_file_is_rejected_unread(
        self, async_client, owner_id, owner_headers, read_sizes
    ):
        response = await upload(
            async_client, owner_id, owner_headers, size=5 * MIB, name="huge.pdf"
        )

        assert response.status_code == 413
        assert response.json()["error"]["details"]["actual_bytes"] == 5 * MIB
        assert "huge.pdf" not in read_sizes

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_accepted_file_read_is_capped(
        self, async_client, owner_id, owner_headers, read_sizes
    ):
        response = await upload(async_client, owner_id, owner_headers, size=2 * MIB)

        assert response.status_code == 201
        assert read_sizes["passport.pdf"] == [2 * MIB]

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_invalid_file_type(self, async_client, owner_id, owner_headers):
        response = await async_client.post(
            f"{BASE}/{owner_id}",
            headers=owner_headers,
            data={"slot_type": "PORTRAIT"},
            files={"file": ("anim.gif", b"GIF89a", "image/gif")},
        )

        assert response.status_code == 415
        assert response.json()["error"]["code"] == "INVALID_FILE_TYPE"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_storage_failure_is_retryable(
        self, async_client, owner_id, owner_headers, blob_store
    ):
        blob_store.put_error = StorageWriteFailedError(details={"key": "internal/key"})

        response = await upload(async_client, owner_id, owner_headers)

        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == "STORAGE_WRITE_FAILED"
        assert error["details"] == {"retryable": True}
        assert "internal/key" not in response.text


class TestAuthentication:
    """Tests for bearer token checks and owner authorization."""

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_missing_token(self, async_client, owner_id):
        response = await async_client.get(f"{BASE}/{owner_id}")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["error"]["code"] == "AUTHENTICATION_ERROR"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_other_owner_forbidden(self, async_client, owner_id):
        headers = create_auth_header(create_token("someone-else"))

        response = await upload(async_client, owner_id, headers)

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "AUTHORIZATION_ERROR"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_admin_acts_for_owner(
        self, async_client, owner_id, admin_headers, audit_service, audit_sink
    ):
        response = await upload(async_client, owner_id, admin_headers)

        assert response.status_code == 201
        await audit_service.drain()
        assert audit_sink.events[0].owner_id == owner_id
        assert audit_sink.events[0].actor_id != owner_id


class TestRetrievalEndpoints:
    """Tests for GET /documents/{owner_id}[/{slot_type}]."""

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_get_document_with_download_url(
        self, async_client, owner_id, owner_headers, blob_store
    ):
        await upload(async_client, owner_id, owner_headers, size=4096)

        response = await async_client.get(f"{BASE}/{owner_id}/primary_id", headers=owner_headers)

        assert response.status_code == 200
        document = response.json()
        assert set(document) == RETRIEVAL_FIELDS
        assert blob_store.resolve(document["downloadUrl"]) == sized_content(4096)

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_get_empty_slot(self, async_client, owner_id, owner_headers):
        response = await async_client.get(f"{BASE}/{owner_id}/PORTRAIT", headers=owner_headers)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "DOCUMENT_NOT_FOUND"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_list_documents(self, async_client, owner_id, owner_headers):
        await upload(async_client, owner_id, owner_headers, "PRIMARY_ID")
        await upload(async_client, owner_id, owner_headers, "EDUCATION_CERT", name="degree.pdf")

        response = await async_client.get(f"{BASE}/{owner_id}", headers=owner_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert {d["slotType"] for d in data["documents"]} == {"PRIMARY_ID", "EDUCATION_CERT"}
        assert all(d["downloadUrl"] for d in data["documents"])

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_list_empty(self, async_client, owner_id, owner_headers):
        response = await async_client.get(f"{BASE}/{owner_id}", headers=owner_headers)

        assert response.status_code == 200
        assert response.json() == {"documents": [], "count": 0}


class TestReplaceAndDelete:
    """Tests for PUT and DELETE /documents/{owner_id}/{slot_type}."""

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_full_lifecycle(self, async_client, owner_id, owner_headers, blob_store):
        first = await upload(async_client, owner_id, owner_headers, size=int(1.9 * MIB))
        assert first.status_code == 201

        replaced = await async_client.put(
            f"{BASE}/{owner_id}/PRIMARY_ID",
            headers=owner_headers,
            files={"file": pdf_part(MIB // 2, "passport-new.pdf")},
        )
        assert replaced.status_code == 200
        assert replaced.json()["message"] == "Document replaced successfully"

        current = await async_client.get(f"{BASE}/{owner_id}/PRIMARY_ID", headers=owner_headers)
        assert current.json()["documentId"] == replaced.json()["document"]["documentId"]
        assert current.json()["fileSizeBytes"] == MIB // 2
        assert len(blob_store.keys()) == 1

        deleted = await async_client.delete(
            f"{BASE}/{owner_id}/PRIMARY_ID", headers=owner_headers
        )
        assert deleted.status_code == 200
        assert deleted.json() == {
            "success": True,
            "message": "Document deleted successfully",
            "slotType": "PRIMARY_ID",
        }

        gone = await async_client.get(f"{BASE}/{owner_id}/PRIMARY_ID", headers=owner_headers)
        assert gone.status_code == 404

        again = await async_client.delete(f"{BASE}/{owner_id}/PRIMARY_ID", headers=owner_headers)
        assert again.status_code == 404
        assert blob_store.keys() == []

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_replace_without_file(self, async_client, owner_id, owner_headers):
        response = await async_client.put(f"{BASE}/{owner_id}/PRIMARY_ID", headers=owner_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MISSING_FILE"


class TestBatchUpload:
    """Tests for POST /documents/{owner_id}/batch."""

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_all_slots_succeed(self, async_client, owner_id, owner_headers):
        response = await async_client.post(
            f"{BASE}/{owner_id}/batch",
            headers=owner_headers,
            files={
                "primary_id": pdf_part(),
                "education_cert": pdf_part(name="degree.pdf"),
                "portrait": ("me.png", b"\x89PNG\r\n\x1a\n", "image/png"),
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["uploadedCount"] == 3
        assert data["failedCount"] == 0

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_partial_success(self, async_client, owner_id, owner_headers):
        response = await async_client.post(
            f"{BASE}/{owner_id}/batch",
            headers=owner_headers,
            files={
                "primary_id": pdf_part(),
                "portrait": ("me.gif", b"GIF89a", "image/gif"),
            },
        )

        assert response.status_code == 207
        results = {r["slotType"]: r for r in response.json()["results"]}
        assert results["PRIMARY_ID"]["success"] is True
        assert results["PORTRAIT"]["error"]["code"] == "INVALID_FILE_TYPE"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_oversized_part_fails_only_its_slot(
        self, async_client, owner_id, owner_headers, read_sizes
    ):
        response = await async_client.post(
            f"{BASE}/{owner_id}/batch",
            headers=owner_headers,
            files={
                "primary_id": pdf_part(size=3 * MIB, name="huge.pdf"),
                "portrait": ("me.png", b"\x89PNG\r\n\x1a\n", "image/png"),
            },
        )

        assert response.status_code == 207
        data = response.json()
        assert [r["slotType"] for r in data["results"]] == ["PRIMARY_ID", "PORTRAIT"]
        assert data["results"][0]["error"]["code"] == "FILE_TOO_LARGE"
        assert data["results"][1]["success"] is True
        assert "huge.pdf" not in read_sizes

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_all_slots_fail(self, async_client, owner_id, owner_headers):
        response = await async_client.post(
            f"{BASE}/{owner_id}/batch",
            headers=owner_headers,
            files={"primary_id": pdf_part(size=2 * MIB + 1)},
        )

        assert response.status_code == 400
        assert response.json()["success"] is False

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_no_files(self, async_client, owner_id, owner_headers):
        response = await async_client.post(
            f"{BASE}/{owner_id}/batch", headers=owner_headers, data={"note": "empty"}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MISSING_FILE"
