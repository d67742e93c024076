"""Error response schemas for OpenAPI documentation."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standardized API error response body."""

    code: str = Field(
        ...,
        description="Error code for client-side handling",
        examples=["FILE_TOO_LARGE"],
    )
    message: str = Field(
        ...,
        description="Human-readable error message",
        examples=["File size 2097153 bytes exceeds the limit of 2097152 bytes"],
    )
    error_id: Optional[str] = Field(
        None,
        description="Unique error ID for support tracking",
        examples=["a1b2c3d4"],
    )
    details: Optional[Dict[str, Any]] = Field(
        None,
        description="Caller-facing error context, e.g. size limit or allowed types",
        examples=[{"limit_bytes": 2097152, "actual_bytes": 2097153}],
    )
    path: Optional[str] = Field(
        None,
        description="Request path that caused the error",
        examples=["/api/v1/documents/user-123"],
    )


class APIErrorResponse(BaseModel):
    """Wrapper for error responses (matches actual API error format)."""

    error: ErrorResponse = Field(..., description="Error details")


ERROR_DESCRIPTIONS = {
    400: "Missing file, missing or unknown slot type",
    401: "Missing, invalid or expired bearer token",
    403: "Caller is neither the owner nor an administrator",
    404: "No active document in this slot",
    409: "A concurrent change to the same slot won; retry the request",
    413: "File exceeds the maximum size",
    415: "MIME type not allowed or extension does not match it",
    422: "Content rejected by the scanner, or malformed request",
    500: "Storage or catalog misconfiguration",
    502: "Document storage failed; retryable",
    504: "Storage or catalog timed out; retryable",
}


def error_responses(*status_codes: int) -> Dict[int, Dict[str, Any]]:
    """OpenAPI ``responses`` entries for the given error status codes."""
    return {
        code: {"model": APIErrorResponse, "description": ERROR_DESCRIPTIONS[code]}
        for code in status_codes
    }
