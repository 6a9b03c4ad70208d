"""
Outgoing email for player notifications.

A provider hands one ``OutgoingEmail`` to a transport (SMTP or the Resend
HTTP API, picked by ``PFG_EMAIL_PROVIDER``) and raises
``EmailDeliveryError`` when the transport rejects it. ``EmailService``
adds the per-recipient rate limit and renders the notification templates.
"""

from __future__ import annotations

import hashlib
import ssl
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import TYPE_CHECKING

import aiosmtplib
import httpx
import structlog
from pydantic import BaseModel

from pfg.config import Settings, get_settings
from pfg.email.templates import streak_expiry_email

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = structlog.get_logger()

RESEND_API_URL = "https://api.resend.com/emails"
RESEND_TIMEOUT_SECONDS = 10.0


class EmailDeliveryError(Exception):
    """The transport did not accept the message."""


class OutgoingEmail(BaseModel):
    to: str
    subject: str
    html_body: str
    text_body: str


class BaseEmailProvider(ABC):
    name = "base"

    def __init__(self, from_address: str, from_name: str) -> None:
        self.from_address = from_address
        self.from_name = from_name

    @property
    def sender(self) -> str:
        return f"{self.from_name} <{self.from_address}>"

    async def send(self, email: OutgoingEmail) -> bool:
        """Deliver ``email``. Returns True once the transport accepted it.

        Raises:
            EmailDeliveryError: If the transport failed.
        """
        await self.deliver(email)
        logger.info("email_sent", to=email.to, subject=email.subject, provider=self.name)
        return True

    @abstractmethod
    async def deliver(self, email: OutgoingEmail) -> None: ...


class SMTPProvider(BaseEmailProvider):
    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        from_address: str,
        from_name: str,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
    ) -> None:
        super().__init__(from_address, from_name)
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls

    def build_message(self, email: OutgoingEmail) -> EmailMessage:
        """Plain text body with an HTML alternative."""
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = email.to
        message["Subject"] = email.subject
        message.set_content(email.text_body)
        message.add_alternative(email.html_body, subtype="html")
        return message

    async def deliver(self, email: OutgoingEmail) -> None:
        try:
            await aiosmtplib.send(
                self.build_message(email),
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.use_tls,
                tls_context=ssl.create_default_context() if self.use_tls else None,
            )
        except aiosmtplib.SMTPException as e:
            logger.exception("email_send_failed", to=email.to, provider=self.name)
            raise EmailDeliveryError(f"SMTP delivery failed: {e}") from e


class ResendProvider(BaseEmailProvider):
    name = "resend"

    def __init__(
        self,
        api_key: str,
        from_address: str,
        from_name: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(from_address, from_name)
        self.api_key = api_key
        self._client = client

    def payload(self, email: OutgoingEmail) -> dict[str, object]:
        return {
            "from": self.sender,
            "to": [email.to],
            "subject": email.subject,
            "html": email.html_body,
            "text": email.text_body,
        }

    async def deliver(self, email: OutgoingEmail) -> None:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            if self._client is not None:
                response = await self._client.post(RESEND_API_URL, headers=headers, json=self.payload(email))
            else:
                async with httpx.AsyncClient(timeout=RESEND_TIMEOUT_SECONDS) as client:
                    response = await client.post(RESEND_API_URL, headers=headers, json=self.payload(email))
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.exception("email_send_failed", to=email.to, provider=self.name)
            raise EmailDeliveryError(f"Resend delivery failed: {e}") from e


def create_provider(settings: Settings | None = None) -> BaseEmailProvider:
    """Build the provider named by ``settings.email_provider``."""
    settings = settings or get_settings()
    provider_name = settings.email_provider.lower()

    if provider_name == SMTPProvider.name:
        return SMTPProvider(
            host=settings.smtp_host,
            port=settings.smtp_port,
            from_address=settings.email_from_address,
            from_name=settings.email_from_name,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
        )
    if provider_name == ResendProvider.name:
        return ResendProvider(
            api_key=settings.resend_api_key,
            from_address=settings.email_from_address,
            from_name=settings.email_from_name,
        )
    msg = f"Unsupported email provider: {provider_name}"
    raise ValueError(msg)


class EmailService:
    """
    Player-facing email for PerfectFit.

    At most ``RATE_LIMIT_MAX`` messages per recipient per
    ``RATE_LIMIT_WINDOW`` seconds, counted in Redis. Without Redis there is
    no limit.
    """

    RATE_LIMIT_MAX = 5
    RATE_LIMIT_WINDOW = 3600

    def __init__(
        self,
        provider: BaseEmailProvider | None = None,
        redis: Redis | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.provider = provider or create_provider(self.settings)
        self._redis = redis

    @staticmethod
    def rate_limit_key(address: str) -> str:
        digest = hashlib.sha256(address.strip().lower().encode()).hexdigest()
        return f"pfg:email_rate:{digest}"

    async def _within_rate_limit(self, address: str) -> bool:
        if self._redis is None:
            return True
        key = self.rate_limit_key(address)
        sent = await self._redis.incr(key)
        if sent == 1:
            await self._redis.expire(key, self.RATE_LIMIT_WINDOW)
        return sent <= self.RATE_LIMIT_MAX

    async def send_email(self, email: OutgoingEmail) -> bool:
        """
        Send one message unless the recipient is over the rate limit.

        Returns False when rate limited.

        Raises:
            EmailDeliveryError: If the provider fails to deliver.
        """
        if not await self._within_rate_limit(email.to):
            logger.warning("email_rate_limited", to=email.to, subject=email.subject)
            return False
        return await self.provider.send(email)

    async def send_streak_expiry_notification(
        self,
        address: str,
        display_name: str | None,
        streak_length: int,
        hours_remaining: int,
    ) -> bool:
        """Remind a player that their streak is about to end."""
        subject, html_body, text_body = streak_expiry_email(
            display_name,
            streak_length,
            hours_remaining,
            play_url=f"{self.settings.frontend_base_url.rstrip('/')}/play",
        )
        return await self.send_email(
            OutgoingEmail(to=address, subject=subject, html_body=html_body, text_body=text_body)
        )
