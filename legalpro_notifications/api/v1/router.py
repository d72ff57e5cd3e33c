from fastapi import APIRouter
from legalpro_notifications.api.v1.endpoints import notifications

# ============================================================
# Main API v1 Router
# ============================================================

api_router = APIRouter()

# Notification routes define their own prefix (/notifications)
api_router.include_router(notifications.router)

# Session lifecycle (/session/logout)
api_router.include_router(notifications.session_router)
