"""Email channel adapter using aiosmtplib."""

from __future__ import annotations

from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid
import logging
import ssl
from typing import TYPE_CHECKING

import aiosmtplib
from jinja2 import select_autoescape
from jinja2.sandbox import SandboxedEnvironment

from notification_service.features.notifications.channels.base import (
    DeliveryResult,
    Failed,
    Sent,
)
from notification_service.features.notifications.enums import REASON_NO_CONTACT, ChannelType
from notification_service.features.notifications.schemas import EmailChannelConfig

if TYPE_CHECKING:
    from uuid import UUID

    from notification_service.features.notifications.channels.contacts import ContactDirectory
    from notification_service.features.notifications.schemas import ChannelConfig

logger = logging.getLogger(__name__)

SMTPS_PORT = 465

HTML_LAYOUT = """\
<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; color: #1f2937;">
    <h2 style="margin-bottom: 12px;">{{ title }}</h2>
    <div style="white-space: pre-line;">{{ body }}</div>
  </body>
</html>
"""


class EmailChannelAdapter:
    """Adapter for email notifications over SMTP.

    Sends a multipart/alternative message: the rendered body as plain text
    plus an HTML part produced from a small sandboxed Jinja2 layout. The
    rendered text is always autoescaped inside the HTML part.
    """

    channel_type = ChannelType.EMAIL

    def __init__(self, contacts: ContactDirectory, *, timeout: float = 30.0) -> None:
        """Initialize email adapter.

        Args:
            contacts: Resolves user ids to email addresses
            timeout: SMTP connection timeout in seconds
        """
        self._contacts = contacts
        self._timeout = timeout
        env = SandboxedEnvironment(
            autoescape=select_autoescape(default_for_string=True),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._layout = env.from_string(HTML_LAYOUT)

    def build_message(
        self,
        config: EmailChannelConfig,
        to_address: str,
        title: str,
        body: str,
    ) -> MIMEMultipart:
        """Build the MIME message for one recipient."""
        message = MIMEMultipart("alternative")
        message["Subject"] = title
        message["From"] = config.from_address
        message["To"] = to_address
        message["Date"] = formatdate(localtime=False)
        message["Message-ID"] = make_msgid(domain=config.from_address.rpartition("@")[2] or None)
        message.attach(MIMEText(body, "plain", "utf-8"))
        message.attach(MIMEText(self._layout.render(title=title, body=body), "html", "utf-8"))
        return message

    def build_client(self, config: EmailChannelConfig) -> aiosmtplib.SMTP:
        """SMTP client for the configured server.

        With `use_tls`, port 465 gets implicit TLS and any other port STARTTLS.
        """
        implicit_tls = config.use_tls and config.smtp_port == SMTPS_PORT
        return aiosmtplib.SMTP(
            hostname=config.smtp_host,
            port=config.smtp_port,
            use_tls=implicit_tls,
            start_tls=config.use_tls and not implicit_tls,
            tls_context=ssl.create_default_context() if config.use_tls else None,
            timeout=self._timeout,
        )

    async def deliver(
        self,
        recipient: str,
        title: str,
        body: str,
        config: ChannelConfig | None,
        *,
        notification_id: UUID | None = None,
    ) -> DeliveryResult:
        if not isinstance(config, EmailChannelConfig):
            return Failed("invalid-config: email configuration required")

        to_address = await self._contacts.contact_for(recipient, self.channel_type)
        if not to_address:
            return Failed(REASON_NO_CONTACT)

        message = self.build_message(config, to_address, title, body)
        if notification_id is not None:
            message["X-Notification-Id"] = str(notification_id)
        smtp = self.build_client(config)

        async with smtp:
            if config.username and config.password:
                await smtp.login(config.username, config.password)
            errors, _response = await smtp.send_message(message)

        if to_address in errors:
            logger.warning(
                "SMTP recipient rejected",
                extra={"user_id": recipient, "error": str(errors[to_address])},
            )
            return Failed(f"rejected: {errors[to_address]}")

        return Sent(provider_id=message["Message-ID"])
