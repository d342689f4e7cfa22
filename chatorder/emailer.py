# chatorder/emailer.py
from __future__ import annotations

import logging
import smtplib
import ssl
from email.message import EmailMessage

from starlette.concurrency import run_in_threadpool

from .config import Settings
from .ordering.persistence import OrderPlaced

logger = logging.getLogger(__name__)


def send_order_email(settings: Settings, to_email: str, subject: str, body: str) -> None:
    msg = EmailMessage()
    msg["From"] = settings.smtp_from or settings.smtp_user
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)

    if settings.smtp_port == 465:
        server = smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port, timeout=20, context=ssl.create_default_context())
    else:
        server = smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=20)
    try:
        if settings.smtp_port != 465:
            server.starttls(context=ssl.create_default_context())
        if settings.smtp_user:
            server.login(settings.smtp_user, settings.smtp_password)
        server.send_message(msg)
    finally:
        server.quit()


class EmailNotifier:
    """Emails the kitchen when a chat checkout creates an order."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @property
    def enabled(self) -> bool:
        return bool(self._settings.smtp_host and self._settings.orders_email_to)

    async def notify(self, event: OrderPlaced) -> None:
        if not self.enabled:
            logger.info("SMTP not configured; skipping email for order %s", event.order_number)
            return

        subject = f"New Canteen Order (Order #{event.order_number})"
        body = (
            f"Order: {event.order_number}\n"
            f"Customer id: {event.user_id}\n"
            f"Total: {self._settings.currency_symbol}{event.total_amount:.2f}\n\n"
            f"{event.summary}"
        )
        await run_in_threadpool(send_order_email, self._settings, self._settings.orders_email_to, subject, body)
