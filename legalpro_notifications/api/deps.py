from fastapi import HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import logging

from legalpro_notifications.core.security import verify_access_token
from legalpro_notifications.gateways import get_gateway
from legalpro_notifications.services.notification_service import NotificationService
from legalpro_notifications.services.reconciler import NotificationReconciler
from legalpro_notifications.services.session_registry import SessionRegistry, get_session_registry

logger = logging.getLogger(__name__)

# Security scheme for Swagger UI
security = HTTPBearer()


# =====================================================
# Get Current user
# =====================================================
async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """
    Dependency that validates the JWT and returns its subject (user id).

    Raises:
        HTTPException 401: If token is invalid, expired or missing
    """
    user_id = verify_access_token(credentials.credentials)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"}
        )
    return user_id


# =====================================================
# Sessions
# =====================================================
async def get_registry() -> SessionRegistry:
    return await get_session_registry()


async def get_reconciler(
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
) -> NotificationReconciler:
    """
    The caller's reconciler. The first request of a user binds a session
    (subscribe + full load); later requests reuse it.
    """
    return await registry.get_or_create(user_id)


async def get_notification_service() -> NotificationService:
    return NotificationService(await get_gateway())
