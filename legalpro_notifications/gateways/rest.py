"""
REST Notification Gateway

Talks to a Supabase / PostgREST ``notifications`` table over HTTP:

    GET    /rest/v1/notifications?user_id=eq.{id}&order=created_at.desc&limit=20
    HEAD   /rest/v1/notifications?user_id=eq.{id}&is_read=eq.false   (Prefer: count=exact)
    PATCH  /rest/v1/notifications?id=eq.{id}&user_id=eq.{uid}          {"is_read": true}
    DELETE /rest/v1/notifications?id=eq.{id}&user_id=eq.{uid}
    POST   /rest/v1/notifications                                      (Prefer: return=representation)

Setup:
------
    NOTIFICATION_BACKEND=rest
    SUPABASE_URL=https://<project>.supabase.co
    SUPABASE_KEY=<service role or anon key>

Live events go through the configured NotificationBroker.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from legalpro_notifications.gateways.base import (
    EventHandler,
    GatewayUnavailableError,
    NotificationGateway,
    Subscription,
)
from legalpro_notifications.schemas.notification import Notification, NotificationCreate
from legalpro_notifications.services.broker import NotificationBroker

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 20


def parse_content_range(header: Optional[str]) -> int:
    """
    Extract the total from a PostgREST ``Content-Range`` header.

    Examples: ``0-19/57`` -> 57, ``*/3`` -> 3, missing or ``*/*`` -> 0
    """
    if not header or "/" not in header:
        return 0
    total = header.rsplit("/", 1)[1].strip()
    try:
        return int(total)
    except ValueError:
        return 0


class RestNotificationGateway(NotificationGateway):
    """
    PostgREST-backed gateway.

    Attributes:
        table: Table name under ``/rest/v1``
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        broker: NotificationBroker,
        table: str = "notifications",
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.broker = broker
        self.table = table
        self._path = f"/rest/v1/{table}"

        headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        if client is None:
            client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=15.0)
        client.headers.update(headers)
        self._http_client = client

        logger.info(f"RestNotificationGateway initialized (table: {table})")

    async def _request(
        self,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        try:
            response = await self._http_client.request(
                method,
                self._path,
                params=params,
                json=json,
                headers=headers,
            )
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            raise GatewayUnavailableError(
                f"{method} {self._path} failed with status {e.response.status_code}: "
                f"{e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise GatewayUnavailableError(f"{method} {self._path} failed: {e}") from e

    async def list_notifications(
        self,
        user_id: str,
        limit: Optional[int] = None
    ) -> List[Notification]:
        response = await self._request("GET", params={
            "select": "*",
            "user_id": f"eq.{user_id}",
            "order": "created_at.desc",
            "limit": limit or DEFAULT_LIST_LIMIT,
        })
        return [Notification.model_validate(row) for row in response.json()]

    async def count_unread(self, user_id: str) -> int:
        response = await self._request(
            "HEAD",
            params={"user_id": f"eq.{user_id}", "is_read": "eq.false"},
            headers={"Prefer": "count=exact"},
        )
        return parse_content_range(response.headers.get("content-range"))

    async def list_unread(self, user_id: str) -> List[Notification]:
        response = await self._request("GET", params={
            "select": "*",
            "user_id": f"eq.{user_id}",
            "is_read": "eq.false",
            "order": "created_at.desc",
        })
        return [Notification.model_validate(row) for row in response.json()]

    async def mark_read(self, notification_id: str, user_id: str) -> None:
        await self._request(
            "PATCH",
            params={"id": f"eq.{notification_id}", "user_id": f"eq.{user_id}"},
            json={"is_read": True},
        )

    async def mark_all_read(self, user_id: str) -> None:
        await self._request(
            "PATCH",
            params={"user_id": f"eq.{user_id}", "is_read": "eq.false"},
            json={"is_read": True},
        )

    async def delete(self, notification_id: str, user_id: str) -> None:
        await self._request(
            "DELETE",
            params={"id": f"eq.{notification_id}", "user_id": f"eq.{user_id}"},
        )

    async def create(self, payload: NotificationCreate) -> Notification:
        response = await self._request(
            "POST",
            json={
                "user_id": payload.user_id,
                "type": payload.type,
                "title": payload.title or "",
                "message": payload.message or "",
                "action_url": payload.action_url,
                "is_read": False,
            },
            headers={"Prefer": "return=representation"},
        )
        rows = response.json()
        row = rows[0] if isinstance(rows, list) else rows
        notification = Notification.model_validate(row)

        logger.info(f"Notification {notification.id} created for user={notification.user_id}")
        await self.broker.publish(notification)
        return notification

    async def subscribe(self, user_id: str, on_event: EventHandler) -> Subscription:
        return await self.broker.subscribe(user_id, on_event)

    async def close(self) -> None:
        await self._http_client.aclose()
