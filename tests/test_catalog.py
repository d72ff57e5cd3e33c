from datetime import datetime, timedelta, timezone

import pytest

from legalpro_notifications.schemas.notification import (
    Notification,
    NotificationCreate,
    NotificationSnapshot,
    NotificationType,
)
from legalpro_notifications.services.catalog import (
    DEFAULT_ICON,
    NOTIFICATION_TEMPLATES,
    badge_label,
    build_notification,
    build_panel,
    icon_for,
    resolve_payload,
    time_ago,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_every_type_has_a_template():
    assert set(NOTIFICATION_TEMPLATES) == {t.value for t in NotificationType}


def test_build_notification_renders_template():
    payload = build_notification("order_completed", "user-1", "A-1042", action_url="/dashboard/orders")

    assert payload.title == "Compra Exitosa"
    assert payload.message == "Tu orden #A-1042 ha sido procesada correctamente."
    assert payload.action_url == "/dashboard/orders"


def test_build_notification_unknown_type():
    with pytest.raises(KeyError, match="Unknown notification type"):
        build_notification("party_invite", "user-1")


def test_resolve_payload_prefers_explicit_text():
    payload = NotificationCreate(user_id="user-1", type="custom", title="Hola")

    resolved = resolve_payload(payload)

    assert resolved.title == "Hola"
    assert resolved.message == ""


def test_resolve_payload_fills_from_template():
    payload = NotificationCreate(user_id="user-1", type="appointment_reminder", value="20/01 a las 10:00")

    resolved = resolve_payload(payload)

    assert resolved.title == "Recordatorio de Cita"
    assert resolved.message == "Tienes una cita programada para el 20/01 a las 10:00."


def test_icon_for_falls_back():
    assert icon_for("course_purchased") == "📚"
    assert icon_for("something_else") == DEFAULT_ICON


@pytest.mark.parametrize("count, label", [(-1, ""), (0, ""), (1, "1"), (9, "9"), (10, "9+"), (250, "9+")])
def test_badge_label(count, label):
    assert badge_label(count) == label


@pytest.mark.parametrize("delta, text", [
    (timedelta(seconds=10), "hace menos de un minuto"),
    (timedelta(seconds=60), "hace 1 minuto"),
    (timedelta(minutes=5), "hace 5 minutos"),
    (timedelta(hours=1), "hace alrededor de 1 hora"),
    (timedelta(hours=3), "hace alrededor de 3 horas"),
    (timedelta(days=1), "hace 1 día"),
    (timedelta(days=4), "hace 4 días"),
    (timedelta(days=60), "hace 2 meses"),
    (timedelta(days=365), "hace 1 año"),
])
def test_time_ago(delta, text):
    assert time_ago(NOW - delta, now=NOW) == text


def test_time_ago_accepts_naive_timestamps():
    assert time_ago((NOW - timedelta(minutes=2)).replace(tzinfo=None), now=NOW) == "hace 2 minutos"


def test_build_panel():
    snapshot = NotificationSnapshot(
        user_id="user-1",
        unread_count=12,
        notifications=[
            Notification(
                id="a",
                user_id="user-1",
                type="lesson_completed",
                title="Lección Completada",
                created_at=NOW - timedelta(minutes=3),
            ),
        ],
    )

    panel = build_panel(snapshot, now=NOW)

    assert panel.badge == "9+"
    assert panel.unread_count == 12
    assert panel.items[0].icon == "✅"
    assert panel.items[0].time_ago == "hace 3 minutos"
    assert panel.items[0].title == "Lección Completada"
