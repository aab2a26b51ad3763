"""Outbound customer e-mail: a logging backend for development and an SMTP backend."""

import asyncio
import logging
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Any

from ..core.config import settings

logger = logging.getLogger(__name__)


class EmailService(ABC):
    """Sends the booking-related messages; subclasses decide how a message leaves."""

    @abstractmethod
    async def send(self, to_email: str, subject: str, body: str) -> bool:
        """Deliver one plain-text message. Returns True when handed off."""

    async def send_booking_confirmation(self, to_email: str, booking_id: str, details: dict[str, Any]) -> bool:
        body = (
            f"Hola {details['customer_name']},\n\n"
            f"Tu reserva para {details['tour_name']} está confirmada.\n"
            f"Fecha: {details['booking_date']}\n"
            f"Adultos: {details.get('adults', 0)}  Niños: {details.get('children', 0)}\n"
            f"Código de reserva: {details['alphanumeric_code']}\n\n"
            "Presenta tu código QR al llegar."
        )
        return await self.send(to_email, f"Reserva confirmada: {details['tour_name']}", body)

    async def send_reminder(self, to_email: str, booking_id: str, details: dict[str, Any]) -> bool:
        body = (
            f"Hola {details['customer_name']}, recuerda que mañana es tu tour a {details['tour_name']}.\n"
            f"Ubicación: {details.get('location') or 'Puerto Vallarta'}\n"
            f"Recomendaciones: {details.get('requirements') or 'Llevar protector solar'}"
        )
        return await self.send(to_email, f"Tu tour es mañana: {details['tour_name']}", body)

    async def send_review_request(self, to_email: str, booking_id: str, details: dict[str, Any]) -> bool:
        body = (
            f"Hola {details['customer_name']}, ¿cómo estuvo tu experiencia en {details['tour_name']}?\n"
            f"Déjanos una reseña aquí: {details['review_url']}"
        )
        return await self.send(to_email, f"¿Qué tal tu tour {details['tour_name']}?", body)

    async def send_cart_recovery(self, to_email: str, booking_id: str, details: dict[str, Any]) -> bool:
        body = (
            f"Hola {details['customer_name']}, notamos que no completaste tu reserva para {details['tour_name']}.\n"
            f"Retoma tu reserva aquí: {details['recovery_url']}"
        )
        return await self.send(to_email, f"Completa tu reserva: {details['tour_name']}", body)


class LoggingEmailService(EmailService):
    """Writes messages to the log instead of sending them."""

    async def send(self, to_email: str, subject: str, body: str) -> bool:
        logger.info(
            "E-mail (log backend)",
            extra={"to_email": to_email, "subject": subject, "body": body}
        )
        return True


class SmtpEmailService(EmailService):
    """Sends through an SMTP relay; the blocking client runs in a worker thread."""

    def __init__(
        self,
        host: str,
        port: int,
        from_address: str,
        username: str | None = None,
        password: str | None = None,
    ):
        self.host = host
        self.port = port
        self.from_address = from_address
        self.username = username
        self.password = password

    def _send_sync(self, to_email: str, subject: str, body: str) -> None:
        msg = EmailMessage()
        msg["From"] = self.from_address
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.set_content(body)

        with smtplib.SMTP(self.host, self.port, timeout=10) as smtp:
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(msg)

    async def send(self, to_email: str, subject: str, body: str) -> bool:
        try:
            await asyncio.to_thread(self._send_sync, to_email, subject, body)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                "Failed to send e-mail",
                extra={"to_email": to_email, "subject": subject, "error": str(e)}
            )
            return False

        logger.info("E-mail sent", extra={"to_email": to_email, "subject": subject})
        return True


def build_email_service() -> EmailService:
    """Pick the e-mail backend from settings."""
    if settings.email_backend == "smtp":
        return SmtpEmailService(
            host=settings.smtp_host,
            port=settings.smtp_port,
            from_address=settings.smtp_from,
            username=settings.smtp_user,
            password=settings.smtp_password,
        )
    return LoggingEmailService()
