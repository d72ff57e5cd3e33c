from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from legalpro_notifications.db.database import Base
from legalpro_notifications.gateways.base import GatewayUnavailableError
from legalpro_notifications.gateways.sql import SqlNotificationGateway
from legalpro_notifications.models.notification import Notification as NotificationModel
from legalpro_notifications.repositories.notification_repo import NotificationRepository
from legalpro_notifications.schemas.notification import NotificationCreate
from legalpro_notifications.services.broker import InMemoryBroker

BASE_TIME = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'notifications.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def broker():
    return InMemoryBroker()


@pytest.fixture
def sql_gateway(session_factory, broker):
    return SqlNotificationGateway(session_factory, broker)


async def insert(session_factory, **fields):
    fields.setdefault("user_id", "user-1")
    fields.setdefault("type", "order_completed")
    fields.setdefault("title", "Compra Exitosa")
    fields.setdefault("message", "Tu orden ha sido procesada correctamente.")
    async with session_factory() as db:
        return await NotificationRepository(db).create(**fields)


async def test_list_orders_by_created_at_desc(sql_gateway, session_factory):
    await insert(session_factory, id="old", created_at=BASE_TIME - timedelta(hours=2))
    await insert(session_factory, id="new", created_at=BASE_TIME)
    await insert(session_factory, id="mid", created_at=BASE_TIME - timedelta(hours=1))
    await insert(session_factory, id="other", user_id="user-2", created_at=BASE_TIME)

    notifications = await sql_gateway.list_notifications("user-1")
    assert [n.id for n in notifications] == ["new", "mid", "old"]
    assert notifications[0].created_at.tzinfo is not None

    limited = await sql_gateway.list_notifications("user-1", limit=2)
    assert [n.id for n in limited] == ["new", "mid"]


async def test_unread_count_and_list(sql_gateway, session_factory):
    await insert(session_factory, id="a")
    await insert(session_factory, id="b", is_read=True)
    await insert(session_factory, id="c", user_id="user-2")

    assert await sql_gateway.count_unread("user-1") == 1
    assert [n.id for n in await sql_gateway.list_unread("user-1")] == ["a"]


async def test_mark_read_and_mark_all_read(sql_gateway, session_factory):
    await insert(session_factory, id="a")
    await insert(session_factory, id="b")
    await insert(session_factory, id="c", user_id="user-2")

    await sql_gateway.mark_read("a", "user-1")
    await sql_gateway.mark_read("missing", "user-1")
    await sql_gateway.mark_read("c", "user-1")
    assert await sql_gateway.count_unread("user-1") == 1
    assert await sql_gateway.count_unread("user-2") == 1

    await sql_gateway.mark_all_read("user-1")
    assert await sql_gateway.count_unread("user-1") == 0
    assert await sql_gateway.count_unread("user-2") == 1


async def test_delete(sql_gateway, session_factory):
    await insert(session_factory, id="a")

    await sql_gateway.delete("a", "user-1")
    await sql_gateway.delete("a", "user-1")

    assert await sql_gateway.list_notifications("user-1") == []


async def test_create_persists_and_publishes(sql_gateway, session_factory, broker):
    received = []
    await sql_gateway.subscribe("user-1", received.append)

    created = await sql_gateway.create(NotificationCreate(
        user_id="user-1",
        type="appointment_scheduled",
        title="Cita Agendada",
        message="Tu cita ha sido confirmada para el 20 de enero.",
    ))

    assert created.is_read is False
    assert [n.id for n in received] == [created.id]
    async with session_factory() as db:
        row = await NotificationRepository(db).get_by_id(created.id)
    assert isinstance(row, NotificationModel)
    assert row.title == "Cita Agendada"


async def test_database_errors_become_gateway_errors(tmp_path, broker):
    # No tables created
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    gateway = SqlNotificationGateway(async_sessionmaker(engine, expire_on_commit=False), broker)
    try:
        with pytest.raises(GatewayUnavailableError):
            await gateway.list_notifications("user-1")
        with pytest.raises(GatewayUnavailableError):
            await gateway.mark_all_read("user-1")
    finally:
        await engine.dispose()


async def test_delete_only_matches_owner(sql_gateway, session_factory):
    await insert(session_factory, id="z", user_id="user-2")

    await sql_gateway.delete("z", "user-1")

    assert [n.id for n in await sql_gateway.list_notifications("user-2")] == ["z"]
