"""
Bearer token handling.

Tokens are issued by the LegalPro auth service; this service only needs
to read the user id (``sub``) out of them. ``create_access_token`` is kept
for service-to-service calls and tests.
"""

from datetime import datetime, timezone, timedelta
from typing import Any, Dict, Optional
import uuid

from jose import JWTError, jwt

from legalpro_notifications.core.config import settings


# =====================================================
# Token Types
# =====================================================
TOKEN_TYPE_ACCESS = "access"


# =====================================================
# Issue
# =====================================================
def create_access_token(
    user_id: Any,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Sign an access token whose subject is ``user_id``."""
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    claims = {
        "sub": str(user_id),
        "type": TOKEN_TYPE_ACCESS,
        "iat": issued_at,
        "exp": issued_at + lifetime,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


# =====================================================
# Verify
# =====================================================
def verify_token(
    token: str,
    token_type: str = TOKEN_TYPE_ACCESS
) -> Optional[Dict[str, Any]]:
    """
    Decode and validate a token.

    Returns:
        The claims, or None for a bad signature, an expired token or a
        token of another type
    """
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None

    if claims.get("type") != token_type:
        return None
    return claims


def verify_access_token(token: str) -> Optional[str]:
    """User id carried by a valid access token, else None."""
    claims = verify_token(token)
    if not claims:
        return None
    return claims.get("sub")
