"""
Notification Catalog

Predefined LegalPro notification templates plus the small helpers the
dashboard uses to render them (icon, unread badge, "time ago").
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

from legalpro_notifications.schemas.notification import (
    NotificationCreate,
    NotificationPanel,
    NotificationSnapshot,
    NotificationType,
    NotificationView,
)


@dataclass(frozen=True)
class NotificationTemplate:
    """Title and message pattern for one notification type."""
    type: str
    title: str
    message: str  # str.format pattern with a single {value} slot

    def render(self, value: Optional[str] = None) -> str:
        return self.message.format(value=value or "")


NOTIFICATION_TEMPLATES: Dict[str, NotificationTemplate] = {
    t.type: t
    for t in (
        NotificationTemplate(
            NotificationType.ORDER_COMPLETED.value,
            "Compra Exitosa",
            "Tu orden #{value} ha sido procesada correctamente.",
        ),
        NotificationTemplate(
            NotificationType.COURSE_PURCHASED.value,
            "Curso Adquirido",
            "¡Felicitaciones! Ahora tienes acceso a: {value}",
        ),
        NotificationTemplate(
            NotificationType.CERTIFICATE_ISSUED.value,
            "¡Certificado Disponible!",
            'Has completado "{value}". Tu certificado está listo para descargar.',
        ),
        NotificationTemplate(
            NotificationType.SERVICE_PURCHASED.value,
            "Servicio Adquirido",
            "Has adquirido: {value}. Por favor agenda tu cita.",
        ),
        NotificationTemplate(
            NotificationType.APPOINTMENT_SCHEDULED.value,
            "Cita Agendada",
            "Tu cita ha sido confirmada para el {value}.",
        ),
        NotificationTemplate(
            NotificationType.APPOINTMENT_REMINDER.value,
            "Recordatorio de Cita",
            "Tienes una cita programada para el {value}.",
        ),
        NotificationTemplate(
            NotificationType.LESSON_COMPLETED.value,
            "Lección Completada",
            "¡Excelente! Has completado: {value}",
        ),
        NotificationTemplate(
            NotificationType.NEWSLETTER_WELCOME.value,
            "Bienvenido al Newsletter",
            "Gracias por suscribirte. Recibirás contenido exclusivo.",
        ),
    )
}


NOTIFICATION_ICONS: Dict[str, str] = {
    NotificationType.ORDER_COMPLETED.value: "🛒",
    NotificationType.COURSE_PURCHASED.value: "📚",
    NotificationType.CERTIFICATE_ISSUED.value: "🏆",
    NotificationType.SERVICE_PURCHASED.value: "⚖️",
    NotificationType.APPOINTMENT_SCHEDULED.value: "📅",
    NotificationType.APPOINTMENT_REMINDER.value: "⏰",
    NotificationType.LESSON_COMPLETED.value: "✅",
    NotificationType.NEWSLETTER_WELCOME.value: "📧",
}

DEFAULT_ICON = "📢"


def get_template(notification_type: str) -> NotificationTemplate:
    """
    Look up the template for a notification type.

    Raises:
        KeyError: If the type has no predefined template
    """
    try:
        return NOTIFICATION_TEMPLATES[notification_type]
    except KeyError:
        raise KeyError(f"Unknown notification type: {notification_type}") from None


def build_notification(
    notification_type: str,
    user_id: str,
    value: Optional[str] = None,
    action_url: Optional[str] = None,
) -> NotificationCreate:
    """Render a catalog template into a ready-to-persist payload."""
    template = get_template(notification_type)
    return NotificationCreate(
        user_id=user_id,
        type=template.type,
        title=template.title,
        message=template.render(value),
        action_url=action_url,
    )


def resolve_payload(payload: NotificationCreate) -> NotificationCreate:
    """
    Fill in title/message from the catalog when the caller left them out.

    Explicit text always wins; unknown types without explicit text raise
    KeyError.
    """
    if payload.title:
        return payload.model_copy(update={"message": payload.message or ""})

    template = get_template(payload.type)
    return payload.model_copy(update={
        "title": template.title,
        "message": payload.message or template.render(payload.value),
    })


def icon_for(notification_type: str) -> str:
    return NOTIFICATION_ICONS.get(notification_type, DEFAULT_ICON)


def badge_label(unread_count: int) -> str:
    """Text for the bell badge: hidden at zero, capped at 9+."""
    if unread_count <= 0:
        return ""
    if unread_count > 9:
        return "9+"
    return str(unread_count)


def time_ago(created_at: datetime, now: Optional[datetime] = None) -> str:
    """Spanish relative time, as shown under each dropdown entry."""
    now = now or datetime.now(timezone.utc)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)

    seconds = int((now - created_at).total_seconds())
    if seconds < 45:
        return "hace menos de un minuto"

    minutes = round(seconds / 60)
    if minutes < 60:
        return "hace 1 minuto" if minutes == 1 else f"hace {minutes} minutos"

    hours = round(minutes / 60)
    if hours < 24:
        return "hace alrededor de 1 hora" if hours == 1 else f"hace alrededor de {hours} horas"

    days = round(hours / 24)
    if days < 30:
        return "hace 1 día" if days == 1 else f"hace {days} días"

    months = round(days / 30)
    if months < 12:
        return "hace 1 mes" if months == 1 else f"hace {months} meses"

    years = round(months / 12)
    return "hace 1 año" if years == 1 else f"hace {years} años"


def build_panel(snapshot: NotificationSnapshot, now: Optional[datetime] = None) -> NotificationPanel:
    """Render a reconciler snapshot for the bell dropdown."""
    now = now or datetime.now(timezone.utc)
    return NotificationPanel(
        badge=badge_label(snapshot.unread_count),
        unread_count=snapshot.unread_count,
        loading=snapshot.loading,
        items=[
            NotificationView(
                **n.model_dump(),
                icon=icon_for(n.type),
                time_ago=time_ago(n.created_at, now),
            )
            for n in snapshot.notifications
        ],
    )
