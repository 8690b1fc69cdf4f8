"""
Email service with provider abstraction.

Supports a logging provider (development default), SMTP and the Resend API.
Provider is selected via configuration. Delivery is fire-and-forget from
the caller's point of view: providers log failures and return False.
"""

from __future__ import annotations

import ssl
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

import httpx
import structlog

from shiftcal.auth.otc import mask_email
from shiftcal.config import Settings, get_settings
from shiftcal.email.templates import share_invite, verification_code

logger = structlog.get_logger()

# Template registry: name -> (function, positional context keys)
_TEMPLATE_REGISTRY: dict[str, tuple[Callable[..., tuple[str, str, str]], tuple[str, ...]]] = {
    "verification_code": (verification_code, ("code",)),
    "share_invite": (share_invite, ("owner_email", "app_url")),
}


class BaseEmailProvider(ABC):
    """Abstract base class for email delivery providers."""

    @abstractmethod
    async def send(
        self,
        from_address: str,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        """Send an email. Returns True on success."""
        ...


class LogProvider(BaseEmailProvider):
    """Write emails to the log instead of delivering them (development)."""

    async def send(
        self,
        from_address: str,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        logger.info("email_logged", sender=from_address, to=to_email, subject=subject, body=text_body)
        return True


@dataclass
class SentEmail:
    from_address: str
    to: str
    subject: str
    html: str
    text: str


class InMemoryProvider(BaseEmailProvider):
    """Collect emails in a list; used by tests and local tooling."""

    def __init__(self) -> None:
        self.sent: list[SentEmail] = []

    async def send(
        self,
        from_address: str,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        self.sent.append(SentEmail(from_address, to_email, subject, html_body, text_body))
        return True


class SMTPProvider(BaseEmailProvider):
    """Send emails via SMTP using aiosmtplib."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        use_tls: bool = True,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls

    async def send(
        self,
        from_address: str,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        """Send via SMTP."""
        import aiosmtplib

        msg = MIMEMultipart("alternative")
        msg["From"] = from_address
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        # Port 465 is implicit TLS; anything else upgrades with STARTTLS.
        implicit_tls = self.port == 465
        try:
            tls_context = ssl.create_default_context() if self.use_tls else None
            await aiosmtplib.send(
                msg,
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                use_tls=self.use_tls and implicit_tls,
                start_tls=self.use_tls and not implicit_tls,
                tls_context=tls_context,
            )
            logger.info("email_sent", to=mask_email(to_email), subject=subject, provider="smtp")
            return True
        except Exception:
            logger.exception("email_send_failed", to=mask_email(to_email), provider="smtp")
            return False


class ResendProvider(BaseEmailProvider):
    """Send emails via Resend API."""

    def __init__(self, api_key: str) -> None:
        self.api_key = api_key

    async def send(
        self,
        from_address: str,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        """Send via Resend HTTP API."""
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    "https://api.resend.com/emails",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "from": from_address,
                        "to": [to_email],
                        "subject": subject,
                        "html": html_body,
                        "text": text_body,
                    },
                    timeout=10.0,
                )
                response.raise_for_status()
                logger.info("email_sent", to=mask_email(to_email), subject=subject, provider="resend")
                return True
        except Exception:
            logger.exception("email_send_failed", to=mask_email(to_email), provider="resend")
            return False


def create_provider(settings: Settings) -> BaseEmailProvider:
    """Create email provider based on configuration."""
    provider_name = settings.email_provider.lower()

    if provider_name == "log":
        return LogProvider()
    if provider_name == "smtp":
        return SMTPProvider(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
        )
    if provider_name == "resend":
        return ResendProvider(api_key=settings.resend_api_key)
    msg = f"Unsupported email provider: {provider_name}"
    raise ValueError(msg)


class EmailService:
    """High-level email service: renders templates and hands them to a provider."""

    def __init__(
        self,
        provider: BaseEmailProvider | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.provider = provider or create_provider(self.settings)

    @property
    def from_address(self) -> str:
        return f"{self.settings.email_from_name} <{self.settings.email_from_address}>"

    async def send_email(self, to: str, subject: str, html_body: str, text_body: str) -> bool:
        """Send one message. Returns True if the provider accepted it."""
        return await self.provider.send(self.from_address, to, subject, html_body, text_body)

    async def send_template(self, to: str, template_name: str, context: dict[str, Any]) -> bool:
        """
        Render a template and send.

        Raises:
            ValueError: If the template name is unknown or context is incomplete.
        """
        entry = _TEMPLATE_REGISTRY.get(template_name)
        if entry is None:
            msg = f"Unknown template: {template_name}"
            raise ValueError(msg)

        template_func, keys = entry
        missing = [key for key in keys if key not in context]
        if missing:
            msg = f"Template {template_name} missing context: {', '.join(missing)}"
            raise ValueError(msg)

        subject, html_body, text_body = template_func(*(context[key] for key in keys))
        return await self.send_email(to, subject, html_body, text_body)
