"""
Notification Endpoints

Presentation surface over the caller's reconciled notification session.

Endpoints:
----------
- GET    /notifications                 - Snapshot (list, unread count, loading)
- GET    /notifications/panel           - Snapshot rendered for the bell dropdown
- GET    /notifications/unread-count    - Unread counter
- GET    /notifications/unread          - Unread notifications straight from the store
- GET    /notifications/stream          - Snapshots pushed over SSE
- POST   /notifications                 - Create a notification for the caller
- POST   /notifications/mark-all-read   - Mark all as read
- POST   /notifications/refresh         - Full reload
- POST   /notifications/{id}/read       - Mark one as read
- DELETE /notifications/{id}            - Delete one
- POST   /session/logout                - Drop the caller's session
"""

import asyncio
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status, Response
from sse_starlette.sse import EventSourceResponse

from legalpro_notifications.api.deps import (
    get_current_user_id,
    get_notification_service,
    get_reconciler,
    get_registry,
)
from legalpro_notifications.gateways.base import GatewayError
from legalpro_notifications.schemas.notification import (
    Notification,
    NotificationCreate,
    NotificationPanel,
    NotificationSnapshot,
    UnreadCount,
)
from legalpro_notifications.services.catalog import build_panel
from legalpro_notifications.services.notification_service import NotificationService
from legalpro_notifications.services.reconciler import NotificationReconciler, ReconcilerState
from legalpro_notifications.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])
session_router = APIRouter(prefix="/session", tags=["Session"])


# ============================================================
# READ
# ============================================================

@router.get(
    "",
    response_model=NotificationSnapshot,
    summary="Current notification snapshot",
)
async def get_snapshot(
    reconciler: NotificationReconciler = Depends(get_reconciler),
):
    return reconciler.snapshot()


@router.get(
    "/panel",
    response_model=NotificationPanel,
    summary="Snapshot rendered for the bell dropdown",
)
async def get_panel(
    reconciler: NotificationReconciler = Depends(get_reconciler),
):
    return build_panel(reconciler.snapshot())


@router.get(
    "/unread-count",
    response_model=UnreadCount,
    summary="Get count of unread notifications",
)
async def unread_count(
    reconciler: NotificationReconciler = Depends(get_reconciler),
):
    return UnreadCount(count=reconciler.unread_count)


@router.get(
    "/unread",
    response_model=List[Notification],
    summary="List unread notifications from the backing store",
)
async def list_unread(
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
):
    try:
        return await service.get_unread(user_id)
    except GatewayError as e:
        logger.error(f"Failed to list unread notifications for user={user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Notification store unavailable",
        )


@router.get(
    "/stream",
    summary="Stream snapshots (SSE)",
    description="""
    Server-Sent Events stream of the caller's notification snapshot.

    One `snapshot` event is sent immediately, then one after every change
    (push event, command, reload). The stream ends when the session is
    released by logout or shutdown.
    """,
)
async def stream_snapshots(
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
    reconciler: NotificationReconciler = Depends(get_reconciler),
):
    return EventSourceResponse(snapshot_events(reconciler, registry, user_id))


async def snapshot_events(
    reconciler: NotificationReconciler,
    registry: SessionRegistry,
    user_id: str,
):
    """
    Yield one ``snapshot`` event now and one per reconciler change.

    The stream keeps the session attached (so it is never released as
    idle) and ends once the session is unbound by logout or shutdown.
    """
    entry = registry.attach(user_id)
    queue: asyncio.Queue = asyncio.Queue()
    remove_listener = reconciler.add_listener(queue.put_nowait)
    try:
        if entry is None or reconciler.state is ReconcilerState.UNBOUND:
            return
        yield {
            "event": "snapshot",
            "data": reconciler.snapshot().model_dump_json(),
        }
        while True:
            snapshot = await queue.get()
            if reconciler.state is ReconcilerState.UNBOUND:
                return
            yield {
                "event": "snapshot",
                "data": snapshot.model_dump_json(),
            }
    finally:
        remove_listener()
        registry.detach(entry)
        logger.debug(f"SSE: stream closed for user={user_id}")


# ============================================================
# COMMANDS
# ============================================================

@router.post(
    "",
    response_model=Notification,
    status_code=status.HTTP_201_CREATED,
    summary="Create a notification",
    description="""
    Create a notification for the caller.

    Leave `title` empty to render the catalog template of `type` with
    `value` (order number, course name, appointment date...).
    """,
)
async def create_notification(
    data: NotificationCreate,
    user_id: str = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
):
    if data.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot create notifications for another user",
        )
    try:
        return await service.create_notification(data)
    except KeyError as e:
        raise HTTPException(
            status_code=422,
            detail=str(e.args[0]) if e.args else "Unknown notification type",
        )
    except GatewayError as e:
        logger.error(f"Failed to create notification for user={user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Notification store unavailable",
        )


@router.post(
    "/mark-all-read",
    response_model=NotificationSnapshot,
    summary="Mark all notifications as read",
)
async def mark_all_read(
    reconciler: NotificationReconciler = Depends(get_reconciler),
):
    await reconciler.mark_all_as_read()
    return reconciler.snapshot()


@router.post(
    "/refresh",
    response_model=NotificationSnapshot,
    summary="Reload notifications from the backing store",
)
async def refresh(
    reconciler: NotificationReconciler = Depends(get_reconciler),
):
    await reconciler.refresh()
    return reconciler.snapshot()


@router.post(
    "/{notification_id}/read",
    response_model=NotificationSnapshot,
    summary="Mark one notification as read",
)
async def mark_read(
    notification_id: str,
    reconciler: NotificationReconciler = Depends(get_reconciler),
):
    await reconciler.mark_as_read(notification_id)
    return reconciler.snapshot()


@router.delete(
    "/{notification_id}",
    response_model=NotificationSnapshot,
    summary="Delete one notification",
)
async def delete_notification(
    notification_id: str,
    reconciler: NotificationReconciler = Depends(get_reconciler),
):
    await reconciler.delete_notification(notification_id)
    return reconciler.snapshot()


# ============================================================
# SESSION
# ============================================================

@session_router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Close the caller's notification session",
)
async def logout(
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
):
    await registry.release(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
