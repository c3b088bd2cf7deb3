"""
Booking notifications
Client e-mail through SMTP and a copy to the salon's Telegram chat.
Delivery is best effort: failures are logged and recorded, never raised.
"""
import logging
import smtplib
from email.message import EmailMessage
from enum import Enum
from typing import Callable, Optional

import httpx
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..models.appointment import Appointment
from ..models.notification import Notification

logger = logging.getLogger(__name__)


class NotificationEvent(str, Enum):
    """Appointment events that trigger a message"""
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_CHANGED = "booking_changed"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_COMPLETED = "booking_completed"


SUBJECTS = {
    NotificationEvent.BOOKING_CONFIRMED: "Booking confirmed",
    NotificationEvent.BOOKING_CHANGED: "Booking changed",
    NotificationEvent.BOOKING_CANCELLED: "Booking cancelled",
    NotificationEvent.BOOKING_COMPLETED: "Thank you for your visit",
}


def render_message(event: NotificationEvent, appointment: Appointment) -> str:
    service = appointment.service
    lines = [
        f"{SUBJECTS[event]}",
        "",
        f"Service: {service.title if service else '-'}",
        f"Date and time: {appointment.start_time:%d.%m.%Y %H:%M}",
    ]
    if service is not None:
        lines.append(f"Duration: {service.duration_minutes} min")
        lines.append(f"Price: {service.price}")
    if appointment.employee is not None:
        lines.append(f"With: {appointment.employee.name}")
    return "\n".join(lines)


class NotificationService:
    """Sends appointment messages to the client and the salon staff"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.Client] = None,
        smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP
    ):
        self.settings = settings or get_settings()
        self.http_client = http_client
        self.smtp_factory = smtp_factory

    # ==================== Channels ====================

    def send_email(self, to: str, subject: str, body: str) -> bool:
        settings = self.settings
        if not settings.SMTP_HOST:
            logger.warning("SMTP is not configured, skipping e-mail to %s", to)
            return False

        sender = settings.SMTP_FROM_EMAIL or settings.SMTP_USER
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = f"{settings.SMTP_FROM_NAME} <{sender}>"
        message["To"] = to
        message.set_content(body)

        try:
            with self.smtp_factory(
                settings.SMTP_HOST,
                settings.SMTP_PORT,
                timeout=settings.NOTIFICATION_TIMEOUT_SECONDS
            ) as smtp:
                smtp.starttls()
                if settings.SMTP_USER and settings.SMTP_PASSWORD:
                    smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("E-mail to %s failed: %s", to, e)
            return False

        logger.info("E-mail '%s' sent to %s", subject, to)
        return True

    def send_telegram_message(self, text: str) -> bool:
        bot_token = self.settings.TELEGRAM_SALON_BOT_TOKEN
        chat_id = self.settings.TELEGRAM_SALON_CHAT_ID
        if not bot_token or not chat_id:
            logger.warning("Telegram is not configured, skipping staff message")
            return False

        url = f"https://api.telegram.org/bot{bot_token}/sendMessage"
        client = self.http_client or httpx.Client(timeout=self.settings.NOTIFICATION_TIMEOUT_SECONDS)
        try:
            response = client.post(url, json={"chat_id": chat_id, "text": text})
        except httpx.HTTPError as e:
            logger.error("Telegram request failed: %s", e)
            return False
        finally:
            if self.http_client is None:
                client.close()

        if response.status_code != 200:
            logger.error("Telegram rejected the message: %s", response.text[:200])
            return False

        logger.info("Telegram message sent to chat %s", chat_id)
        return True

    # ==================== Events ====================

    def notify(self, db: Session, event: NotificationEvent, appointment: Appointment):
        """Send the message for an event and record each delivery attempt"""
        subject = f"{SUBJECTS[event]} - {appointment.service.title}" if appointment.service else SUBJECTS[event]
        body = render_message(event, appointment)

        recipient = appointment.contact_email
        if recipient:
            sent = self.send_email(recipient, subject, body)
            self._record(db, appointment, event, "email", recipient, body, sent)

        if self.settings.TELEGRAM_SALON_CHAT_ID:
            staff_text = f"{body}\nClient: {appointment.contact_name or '-'}\nID #{appointment.id}"
            sent = self.send_telegram_message(staff_text)
            self._record(db, appointment, event, "telegram", self.settings.TELEGRAM_SALON_CHAT_ID, staff_text, sent)

        db.commit()

    @staticmethod
    def _record(db, appointment, event, channel, recipient, message, sent):
        db.add(Notification(
            appointment_id=appointment.id,
            event=event.value,
            channel=channel,
            recipient=recipient,
            message=message,
            status="sent" if sent else "failed"
        ))
