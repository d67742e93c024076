"""FastAPI security dependencies.

Provides:
- HTTPBearer security scheme
- get_current_principal: the verified caller
- authorize_owner: caller must be the owner named in the path, or an admin
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import settings
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.logging import get_logger

from .tokens import verify_token

logger = get_logger(__name__)

# auto_error off so a missing header goes through the standard error envelope
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """The authenticated caller."""

    subject: str
    role: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role is not None and self.role in settings.ADMIN_ROLES


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Principal:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authenticated")

    payload = verify_token(credentials.credentials)
    return Principal(subject=str(payload["sub"]), role=payload.get("role"))


def authorize_owner(
    owner_id: str,
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    """Allow the owner themselves or an administrator acting on their behalf."""
    if principal.subject == owner_id:
        return principal
    if principal.is_admin:
        logger.info(
            "Administrator acting on owner documents",
            actor_id=principal.subject,
            owner_id=owner_id,
        )
        return principal

    logger.warning(
        "Authorization failed: caller is not the owner",
        actor_id=principal.subject,
        owner_id=owner_id,
    )
    raise AuthorizationError(details={"owner_id": owner_id, "actor_id": principal.subject})
