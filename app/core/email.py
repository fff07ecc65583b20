"""
Outbound email — SMTP delivery behind a tiny ``EmailSender`` interface.
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from fastapi.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.exceptions import DeliveryFailed

logger = logging.getLogger(__name__)


class EmailSender(Protocol):
    async def send(self, recipient: str, subject: str, body: str) -> None:
        """Deliver a plain-text message or raise ``DeliveryFailed``."""


class SMTPEmailSender:
    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str | None = None,
        password: str | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password

    @classmethod
    def from_settings(cls) -> SMTPEmailSender:
        return cls(
            settings.EMAIL_HOST,
            settings.EMAIL_PORT,
            settings.EMAIL_FROM,
            settings.EMAIL_USERNAME,
            settings.EMAIL_PASSWORD,
        )

    async def send(self, recipient: str, subject: str, body: str) -> None:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = recipient
        msg["Subject"] = subject
        msg.set_content(body)

        try:
            # smtplib is blocking
            await run_in_threadpool(self._send_sync, msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Email delivery to %s failed: %s", recipient, exc)
            raise DeliveryFailed() from exc
        logger.info("Email '%s' sent to %s", subject, recipient)

    def _send_sync(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=10) as server:
            server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(msg)
