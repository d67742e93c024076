"""JWT access token verification.

Tokens are issued by the platform's identity service; this service only
verifies them. Verification failures raise AuthenticationError.
"""

from typing import Any, Dict, Optional

import jwt

from app.core.config import settings
from app.core.exceptions import AuthenticationError
from app.core.logging import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"


def verify_token(
    token: str,
    secret_key: Optional[str] = None,
    algorithm: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Verify and decode a JWT access token.

    Args:
        token: Encoded JWT
        secret_key: Verification key (defaults to JWT_SECRET_KEY)
        algorithm: Signing algorithm (defaults to JWT_ALGORITHM)

    Returns:
        Decoded token claims

    Raises:
        AuthenticationError: If the token is expired, malformed, or of the wrong type
    """
    try:
        payload = jwt.decode(
            token,
            secret_key or settings.JWT_SECRET_KEY,
            algorithms=[algorithm or settings.JWT_ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        logger.debug("Token verification failed: expired signature")
        raise AuthenticationError("Access token has expired")
    except jwt.InvalidTokenError as e:
        logger.debug("Token verification failed", error=str(e))
        raise AuthenticationError("Access token is invalid", details={"reason": str(e)})

    # Support both 'type' and 'token_type' claims; untyped tokens are accepted
    token_type = payload.get("token_type") or payload.get("type")
    if token_type and token_type != ACCESS_TOKEN_TYPE:
        logger.warning("Token verification failed: wrong token type", provided_type=token_type)
        raise AuthenticationError("Invalid token type")

    return payload
