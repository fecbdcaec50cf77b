"""Outbound transports used by the dispatch worker."""
import smtplib
import ssl
from email.message import EmailMessage
from pathlib import Path
from typing import Optional, Protocol

from src import settings
from src.errors import DeliveryFailure
from src.logging_conf import logger


class Transport(Protocol):
    """Delivers one message or raises DeliveryFailure."""

    dry_run: bool

    def send(self, recipient: str, subject: str, body: str) -> None:
        ...


class DryRunTransport:
    """Logs messages instead of sending them."""

    dry_run = True

    def send(self, recipient: str, subject: str, body: str) -> None:
        logger.info(f"[DRY RUN] Would send email to {recipient} - Subject: {subject}")


class SmtpTransport:
    """Sends HTML mail over SMTP with STARTTLS."""

    dry_run = False

    def __init__(self, host: Optional[str] = None, port: Optional[int] = None,
                 user: Optional[str] = None, password: Optional[str] = None,
                 attachment_path: Optional[str] = None, timeout: Optional[int] = None):
        self.host = host or settings.SMTP_HOST
        self.port = port or settings.SMTP_PORT
        self.user = user or settings.SENDER_EMAIL
        self.password = password or settings.SMTP_PASSWORD
        self.timeout = timeout or settings.SMTP_TIMEOUT
        path = attachment_path if attachment_path is not None else settings.ATTACHMENT_PATH
        self.attachment_path = Path(path) if path else None

    def send(self, recipient: str, subject: str, body: str) -> None:
        message = self._build_message(recipient, subject, body)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                smtp.ehlo()
                smtp.starttls(context=ssl.create_default_context())
                smtp.ehlo()
                smtp.login(self.user, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryFailure(f"SMTP delivery to {recipient} failed: {e}") from e

    def _build_message(self, recipient: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.user
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(body, subtype="html")

        if self.attachment_path:
            if self.attachment_path.is_file():
                message.add_attachment(
                    self.attachment_path.read_bytes(),
                    maintype="application",
                    subtype="pdf" if self.attachment_path.suffix.lower() == ".pdf" else "octet-stream",
                    filename=self.attachment_path.name,
                )
            else:
                logger.warning(f"Attachment {self.attachment_path} not found. Sending without attachment.")
        return message


def build_transport() -> Transport:
    """Pick the transport for the current configuration."""
    if settings.DRY_RUN:
        return DryRunTransport()
    return SmtpTransport()
