"""Security module for authentication and authorization.

This module provides:
- JWT access token verification
- FastAPI security dependencies

Usage:
    from app.core.security import authorize_owner, Principal
"""

from .dependencies import (
    Principal,
    authorize_owner,
    get_current_principal,
    security,
)
from .tokens import ACCESS_TOKEN_TYPE, verify_token

__all__ = [
    "ACCESS_TOKEN_TYPE",
    "Principal",
    "authorize_owner",
    "get_current_principal",
    "security",
    "verify_token",
]
