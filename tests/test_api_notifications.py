import asyncio
import json

import httpx
import pytest

from legalpro_notifications.api.deps import get_notification_service, get_registry
from legalpro_notifications.api.v1.endpoints.notifications import snapshot_events
from legalpro_notifications.core.security import create_access_token
from legalpro_notifications.main import app
from legalpro_notifications.services.notification_service import NotificationService
from legalpro_notifications.services.reconciler import NotificationReconciler
from legalpro_notifications.services.session_registry import SessionRegistry

PREFIX = "/api/v1"


def auth(user_id: str = "user-1") -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
async def registry(gateway):
    registry = SessionRegistry(lambda: NotificationReconciler(gateway))
    yield registry
    await registry.close()


@pytest.fixture
async def client(registry, gateway):
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_notification_service] = lambda: NotificationService(gateway)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def seeded(gateway, make_notification):
    gateway.seed(
        make_notification(id="a", minutes_ago=0),
        make_notification(id="b", minutes_ago=5),
        make_notification(id="c", minutes_ago=10, is_read=True),
        make_notification(id="z", user_id="user-2"),
    )


# ============================================================
# Auth
# ============================================================

async def test_requires_bearer_token(client):
    response = await client.get(f"{PREFIX}/notifications")
    assert response.status_code in (401, 403)


async def test_rejects_invalid_token(client):
    response = await client.get(
        f"{PREFIX}/notifications",
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401


# ============================================================
# Reads
# ============================================================

async def test_snapshot(client, seeded):
    response = await client.get(f"{PREFIX}/notifications", headers=auth())

    assert response.status_code == 200
    body = response.json()
    assert body["user_id"] == "user-1"
    assert [n["id"] for n in body["notifications"]] == ["a", "b", "c"]
    assert body["unread_count"] == 2
    assert body["loading"] is False


async def test_unread_count(client, seeded):
    response = await client.get(f"{PREFIX}/notifications/unread-count", headers=auth())

    assert response.json() == {"count": 2}


async def test_panel(client, seeded):
    response = await client.get(f"{PREFIX}/notifications/panel", headers=auth())

    body = response.json()
    assert body["badge"] == "2"
    assert body["items"][0]["icon"] == "🛒"
    assert body["items"][0]["time_ago"].startswith("hace")


async def test_unread_from_store(client, seeded):
    response = await client.get(f"{PREFIX}/notifications/unread", headers=auth())

    assert [n["id"] for n in response.json()] == ["a", "b"]


async def test_unread_from_store_unavailable(client, gateway, seeded):
    gateway.failing.add("list_unread")
    response = await client.get(f"{PREFIX}/notifications/unread", headers=auth())

    assert response.status_code == 503


# ============================================================
# Commands
# ============================================================

async def test_mark_read(client, gateway, seeded):
    response = await client.post(f"{PREFIX}/notifications/a/read", headers=auth())

    assert response.status_code == 200
    assert response.json()["unread_count"] == 1
    assert gateway.get("a").is_read


async def test_mark_all_read(client, seeded):
    response = await client.post(f"{PREFIX}/notifications/mark-all-read", headers=auth())

    body = response.json()
    assert body["unread_count"] == 0
    assert all(n["is_read"] for n in body["notifications"])


async def test_delete_keeps_counter(client, gateway, seeded):
    response = await client.delete(f"{PREFIX}/notifications/a", headers=auth())

    body = response.json()
    assert [n["id"] for n in body["notifications"]] == ["b", "c"]
    assert body["unread_count"] == 2
    assert gateway.get("a") is None


async def test_refresh_resynchronizes(client, gateway, seeded):
    await client.delete(f"{PREFIX}/notifications/a", headers=auth())

    response = await client.post(f"{PREFIX}/notifications/refresh", headers=auth())

    assert response.json()["unread_count"] == 1


async def test_command_failure_is_not_an_http_error(client, gateway, seeded):
    gateway.failing.add("mark_read")

    response = await client.post(f"{PREFIX}/notifications/a/read", headers=auth())

    assert response.status_code == 200
    assert response.json()["unread_count"] == 1


async def test_commands_cannot_touch_another_users_notification(client, gateway, seeded):
    read = await client.post(f"{PREFIX}/notifications/z/read", headers=auth("user-1"))
    deleted = await client.delete(f"{PREFIX}/notifications/z", headers=auth("user-1"))

    assert read.status_code == 200
    assert deleted.status_code == 200
    assert gateway.get("z") is not None
    assert gateway.get("z").is_read is False

    owner = await client.get(f"{PREFIX}/notifications", headers=auth("user-2"))
    assert [n["id"] for n in owner.json()["notifications"]] == ["z"]
    assert owner.json()["unread_count"] == 1


# ============================================================
# Create
# ============================================================

async def test_create_reaches_open_session(client, registry, seeded):
    await client.get(f"{PREFIX}/notifications", headers=auth())

    response = await client.post(
        f"{PREFIX}/notifications",
        json={"user_id": "user-1", "type": "service_purchased", "value": "Asesoría Laboral"},
        headers=auth(),
    )

    assert response.status_code == 201
    created = response.json()
    assert created["title"] == "Servicio Adquirido"
    assert created["message"] == "Has adquirido: Asesoría Laboral. Por favor agenda tu cita."

    await registry.get("user-1").reconciler.settle()
    snapshot = (await client.get(f"{PREFIX}/notifications", headers=auth())).json()
    assert snapshot["notifications"][0]["id"] == created["id"]
    assert snapshot["unread_count"] == 3


async def test_create_for_another_user_is_forbidden(client):
    response = await client.post(
        f"{PREFIX}/notifications",
        json={"user_id": "user-2", "title": "Hola"},
        headers=auth(),
    )

    assert response.status_code == 403


async def test_create_unknown_type_without_text(client):
    response = await client.post(
        f"{PREFIX}/notifications",
        json={"user_id": "user-1", "type": "mystery"},
        headers=auth(),
    )

    assert response.status_code == 422


# ============================================================
# Session
# ============================================================

async def test_logout_releases_session(client, registry, seeded):
    await client.get(f"{PREFIX}/notifications", headers=auth())
    assert "user-1" in registry

    response = await client.post(f"{PREFIX}/session/logout", headers=auth())

    assert response.status_code == 204
    assert "user-1" not in registry


# ============================================================
# Stream
# ============================================================

async def test_stream_sends_snapshot_then_changes(registry, seeded):
    reconciler = await registry.get_or_create("user-1")
    events = snapshot_events(reconciler, registry, "user-1")

    first = await events.__anext__()
    assert first["event"] == "snapshot"
    assert json.loads(first["data"])["unread_count"] == 2
    assert registry.get("user-1").streams == 1

    await reconciler.mark_as_read("a")
    second = await asyncio.wait_for(events.__anext__(), timeout=1)
    assert json.loads(second["data"])["unread_count"] == 1

    await events.aclose()
    assert registry.get("user-1").streams == 0


async def test_stream_ends_when_session_is_released(registry, seeded):
    reconciler = await registry.get_or_create("user-1")
    entry = registry.get("user-1")
    events = snapshot_events(reconciler, registry, "user-1")
    await events.__anext__()

    async def remaining():
        return [event async for event in events]

    waiting = asyncio.create_task(remaining())
    await asyncio.sleep(0)
    await registry.release("user-1")

    assert await asyncio.wait_for(waiting, timeout=1) == []
    assert entry.streams == 0


async def test_stream_for_released_session_ends_at_once(registry, seeded):
    reconciler = await registry.get_or_create("user-1")
    await registry.release("user-1")
    events = snapshot_events(reconciler, registry, "user-1")

    assert [event async for event in events] == []


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
