"""Email transports."""

from __future__ import annotations

import logging
import smtplib
import uuid
from datetime import datetime, timezone
from email.message import EmailMessage as MimeMessage
from email.utils import formataddr, parseaddr
from pathlib import Path
from typing import Optional, Protocol

from fittrack.core.config import AppSettings, get_settings
from fittrack.notifications.errors import InvalidRecipientError
from fittrack.notifications.payloads import EmailMessage

LOGGER = logging.getLogger("fittrack.notifications.senders")


class EmailSender(Protocol):
    """``send`` returns ``False`` when sending is switched off by configuration."""

    def send(self, message: EmailMessage) -> bool:
        ...


def validate_recipient(address: str) -> str:
    _, parsed = parseaddr(address)
    if not parsed or "@" not in parsed or parsed != address.strip():
        raise InvalidRecipientError("Recipient email address is invalid.")
    local_part, _, domain = parsed.rpartition("@")
    if not local_part or not domain or any(char.isspace() for char in parsed):
        raise InvalidRecipientError("Recipient email address is invalid.")
    return parsed


class FileEmailSender(EmailSender):
    """Writes each message to ``<output_directory>/<timestamp>-<id>.email.txt``."""

    def __init__(self, *, settings: Optional[AppSettings] = None, output_directory: Optional[Path] = None) -> None:
        self._settings = settings or get_settings()
        self._output_directory = output_directory or Path(self._settings.email_output_directory).expanduser()

    def send(self, message: EmailMessage) -> bool:
        if not self._settings.email_sender_enabled:
            LOGGER.info("email_send_disabled", extra={"sender": "file"})
            return False

        self._output_directory.mkdir(parents=True, exist_ok=True)
        now = datetime.now(timezone.utc)
        path = self._output_directory / f"{now:%Y%m%d-%H%M%S%f}-{uuid.uuid4().hex}.email.txt"
        path.write_text(self._build_content(message, now), encoding="utf-8")
        LOGGER.info("email_written_to_file", extra={"path": str(path)})
        return True

    def _build_content(self, message: EmailMessage, saved_at: datetime) -> str:
        lines = [
            f"SavedAtUtc: {saved_at.isoformat()}",
            f"DeliveryMode: {self._settings.email_delivery_mode}",
            f"From: {formataddr((self._settings.email_from_name, self._settings.email_from_address))}",
            f"To: {message.to}",
            f"Subject: {message.subject}",
            f"ContentType: {'text/html' if message.is_html else 'text/plain'}",
            "---",
        ]
        return "\n".join(lines) + "\n" + message.body


class SmtpEmailSender(EmailSender):
    """Delivers messages through an SMTP relay, upgrading with STARTTLS when enabled."""

    def __init__(self, *, settings: Optional[AppSettings] = None) -> None:
        self._settings = settings or get_settings()

    def build_message(self, message: EmailMessage) -> MimeMessage:
        recipient = validate_recipient(message.to)
        mime = MimeMessage()
        mime["From"] = formataddr((self._settings.email_from_name, self._settings.email_from_address))
        mime["To"] = recipient
        mime["Subject"] = message.subject
        if message.is_html:
            mime.set_content(message.body, subtype="html")
        else:
            mime.set_content(message.body)
        return mime

    def send(self, message: EmailMessage) -> bool:
        if not self._settings.email_sender_enabled:
            LOGGER.info("email_send_disabled", extra={"sender": "smtp"})
            return False
        if not self._settings.smtp_host:
            raise RuntimeError("SMTP host is not configured")

        mime = self.build_message(message)
        with smtplib.SMTP(
            self._settings.smtp_host,
            self._settings.smtp_port,
            timeout=self._settings.smtp_timeout_seconds,
        ) as client:
            if self._settings.smtp_use_tls:
                client.starttls()
            if self._settings.smtp_username:
                client.login(self._settings.smtp_username, self._settings.smtp_password or "")
            client.send_message(mime)

        LOGGER.info("email_sent_via_smtp", extra={"smtp_host": self._settings.smtp_host})
        return True


_sender: Optional[EmailSender] = None


def get_email_sender() -> EmailSender:
    """Return the cached sender for the configured delivery mode."""

    global _sender
    if _sender is not None:
        return _sender

    settings = get_settings()
    if settings.email_delivery_mode == "smtp":
        _sender = SmtpEmailSender(settings=settings)
    else:
        _sender = FileEmailSender(settings=settings)
    return _sender


def set_email_sender(sender: Optional[EmailSender]) -> None:
    """Override the cached sender (primarily for tests)."""

    global _sender
    _sender = sender
