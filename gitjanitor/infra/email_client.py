"""
Email notification infrastructure for gitjanitor.

Sends plain-text notifications over SMTP. Delivery is best effort: the
client raises NotificationFailure on any transport error and callers log
it and move on.
"""

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Any, Dict, Iterable, List

from ..domain.errors import NotificationFailure

logger = logging.getLogger(__name__)


@dataclass
class EmailSettings:
    """SMTP settings, from the ``email`` config section."""
    enabled: bool = False
    smtp_server: str = ""
    smtp_port: int = 587
    username: str = ""
    password: str = ""
    from_email: str = ""
    use_tls: bool = True
    timeout_seconds: int = 30

    @classmethod
    def from_config(cls, section: Dict[str, Any]) -> 'EmailSettings':
        """Build settings from a config section, ignoring unknown keys."""
        section = section or {}
        return cls(
            enabled=bool(section.get('enabled', False)),
            smtp_server=section.get('smtp_server', ''),
            smtp_port=int(section.get('smtp_port', 587)),
            username=section.get('username', ''),
            password=section.get('password', ''),
            from_email=section.get('from_email', ''),
            use_tls=bool(section.get('use_tls', True)),
            timeout_seconds=int(section.get('timeout_seconds', 30)),
        )


class EmailClient:
    """
    Notification gateway backed by SMTP.

    When email is disabled in configuration, notifications are logged
    instead of sent.

    Example:
        client = EmailClient(EmailSettings(enabled=True, smtp_server="smtp.example.com"))
        client.notify(["dev@example.com"], "Pending archival", "Branch x ...")
    """

    def __init__(self, settings: EmailSettings):
        self.settings = settings

    def build_message(self, recipients: List[str], subject: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg['From'] = self.settings.from_email or self.settings.username
        msg['To'] = ', '.join(recipients)
        msg['Subject'] = subject
        msg.set_content(body)
        return msg

    def notify(self, recipients: Iterable[str], subject: str, body: str) -> bool:
        """
        Send one message to all recipients.

        Args:
            recipients: Email addresses
            subject: Message subject
            body: Plain-text body

        Returns:
            True if the message was sent, False if email is disabled

        Raises:
            NotificationFailure: If there is no recipient or SMTP fails
        """
        recipients = [r for r in recipients if r]
        if not recipients:
            raise NotificationFailure(f"No recipients for '{subject}'")

        if not self.settings.enabled:
            logger.info(f"Email disabled, not sending '{subject}' to {', '.join(recipients)}")
            return False

        if not self.settings.smtp_server:
            raise NotificationFailure("Email enabled but no smtp_server configured")

        msg = self.build_message(recipients, subject, body)
        try:
            with smtplib.SMTP(
                self.settings.smtp_server,
                self.settings.smtp_port,
                timeout=self.settings.timeout_seconds,
            ) as server:
                if self.settings.use_tls:
                    server.starttls()
                if self.settings.username and self.settings.password:
                    server.login(self.settings.username, self.settings.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationFailure(
                f"Failed to send '{subject}' to {', '.join(recipients)}: {e}"
            ) from e

        logger.debug(f"Email '{subject}' sent to {', '.join(recipients)}")
        return True
