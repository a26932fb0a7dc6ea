"""Outbound mail for server-side functions.

Functions that notify people (the contact form) take an optional
:class:`Mailer`.  :class:`SmtpMailer` is the bundled transport; it is built
from the ``FOLIO_SMTP_*`` settings and is absent when no SMTP host is set,
in which case messages are only stored.

Tags:
    folio-core, mail, smtp, notifications
"""

from __future__ import annotations

import asyncio
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Any, Protocol, runtime_checkable

from folio.core.errors import ExecutionError
from folio.core.logging import get_logger

logger = get_logger(__name__)


class MailError(ExecutionError):
    """The mail transport rejected or could not deliver a message."""


@dataclass(frozen=True, slots=True)
class MailMessage:
    to: tuple[str, ...]
    subject: str
    text: str
    reply_to: str | None = None


@runtime_checkable
class Mailer(Protocol):
    async def send(self, message: MailMessage) -> str:
        """Deliver ``message`` and return its Message-ID."""
        ...


class SmtpMailer:
    """SMTP transport (STARTTLS and login when configured)."""

    def __init__(
        self,
        host: str,
        from_address: str,
        *,
        port: int = 587,
        user: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: float = 30.0,
    ):
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout
        self.from_address = from_address

    @classmethod
    def from_settings(cls, settings: Any) -> SmtpMailer | None:
        if not settings.smtp_host:
            return None
        return cls(
            settings.smtp_host,
            settings.mail_from,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            timeout=settings.smtp_timeout,
        )

    def build_message(self, message: MailMessage) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = message.subject
        msg["From"] = self.from_address
        msg["To"] = ", ".join(message.to)
        if message.reply_to:
            msg["Reply-To"] = message.reply_to
        msg["Message-ID"] = make_msgid(domain=self.from_address.rpartition("@")[2] or None)
        msg.set_content(message.text)
        return msg

    def _deliver(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            if self._use_tls:
                server.starttls()
            if self._user and self._password:
                server.login(self._user, self._password)
            server.send_message(msg)

    async def send(self, message: MailMessage) -> str:
        msg = self.build_message(message)
        try:
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("mail.send_failed", host=self._host, subject=message.subject, error=str(exc))
            raise MailError(f"Mail delivery failed: {exc}", cause=exc) from exc
        logger.info("mail.sent", recipients=len(message.to), message_id=msg["Message-ID"])
        return msg["Message-ID"]


__all__ = ["MailError", "MailMessage", "Mailer", "SmtpMailer"]
