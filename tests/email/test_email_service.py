"""Tests for email service and templates."""

from unittest.mock import AsyncMock, MagicMock, patch

import aiosmtplib
import httpx
import pytest

from pfg.config import Settings
from pfg.email.service import (
    RESEND_API_URL,
    EmailDeliveryError,
    EmailService,
    OutgoingEmail,
    ResendProvider,
    SMTPProvider,
    create_provider,
)
from pfg.email.templates import streak_expiry_email

EMAIL = OutgoingEmail(to="a@example.com", subject="Hi", html_body="<p>html</p>", text_body="text")


def _smtp() -> SMTPProvider:
    return SMTPProvider("localhost", 587, "noreply@example.com", "PerfectFit", use_tls=False)


class TestStreakExpiryTemplate:
    def test_returns_tuple(self):
        subject, html, text = streak_expiry_email("Tess", 12, 3, "https://example.com/play")
        assert subject == "Your 12-day streak ends in 3 hours"
        assert "Tess" in html
        assert "https://example.com/play" in html
        assert "https://example.com/play" in text
        assert "12 days" in text

    def test_singular_hour(self):
        subject, _, text = streak_expiry_email("Tess", 1, 1, "https://example.com/play")
        assert subject.endswith("in 1 hour")
        assert "1 day in a row" in text

    def test_escapes_display_name(self):
        _, html, _ = streak_expiry_email("<b>x</b>", 3, 2, "https://example.com/play")
        assert "<b>x</b>" not in html
        assert "&lt;b&gt;x&lt;/b&gt;" in html

    def test_missing_name(self):
        _, _, text = streak_expiry_email(None, 3, 2, "https://example.com/play")
        assert text.startswith("Hi Player,")


class TestCreateProvider:
    def test_smtp_default(self):
        provider = create_provider(Settings())
        assert isinstance(provider, SMTPProvider)
        assert provider.sender == "PerfectFit <noreply@perfectfit.game>"

    def test_resend(self):
        provider = create_provider(Settings(email_provider="Resend", resend_api_key="re_test"))
        assert isinstance(provider, ResendProvider)
        assert provider.api_key == "re_test"

    def test_unsupported(self):
        with pytest.raises(ValueError, match="Unsupported email provider"):
            create_provider(Settings(email_provider="carrier-pigeon"))


class TestSMTPProvider:
    def test_message_has_text_and_html(self):
        message = _smtp().build_message(EMAIL)
        assert message["From"] == "PerfectFit <noreply@example.com>"
        assert message["To"] == "a@example.com"
        assert [part.get_content_type() for part in message.iter_parts()] == ["text/plain", "text/html"]

    @pytest.mark.asyncio
    async def test_failure_raises(self):
        with patch("pfg.email.service.aiosmtplib.send", AsyncMock(side_effect=aiosmtplib.SMTPException("boom"))):
            with pytest.raises(EmailDeliveryError, match="SMTP delivery failed"):
                await _smtp().send(EMAIL)

    @pytest.mark.asyncio
    async def test_success(self):
        with patch("pfg.email.service.aiosmtplib.send", AsyncMock()) as send:
            assert await _smtp().send(EMAIL) is True
        assert send.await_args.kwargs["username"] is None
        assert send.await_args.kwargs["start_tls"] is False


class TestResendProvider:
    @pytest.mark.asyncio
    async def test_posts_payload(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "msg_1"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            provider = ResendProvider("re_test", "noreply@example.com", "PerfectFit", client=client)
            assert await provider.send(EMAIL) is True

        (request,) = seen
        assert str(request.url) == RESEND_API_URL
        assert request.headers["Authorization"] == "Bearer re_test"

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(422, json={"message": "bad"}))
        async with httpx.AsyncClient(transport=transport) as client:
            provider = ResendProvider("re_test", "noreply@example.com", "PerfectFit", client=client)
            with pytest.raises(EmailDeliveryError, match="Resend delivery failed"):
                await provider.send(EMAIL)


class TestEmailService:
    @pytest.mark.asyncio
    async def test_no_redis_means_no_rate_limit(self):
        provider = MagicMock()
        provider.send = AsyncMock(return_value=True)
        service = EmailService(provider=provider, settings=Settings())

        for _ in range(EmailService.RATE_LIMIT_MAX + 2):
            assert await service.send_email(EMAIL)

    @pytest.mark.asyncio
    async def test_rate_limited_after_max(self):
        provider = MagicMock()
        provider.send = AsyncMock(return_value=True)
        redis = MagicMock()
        redis.incr = AsyncMock(side_effect=[1, EmailService.RATE_LIMIT_MAX + 1])
        redis.expire = AsyncMock()
        service = EmailService(provider=provider, redis=redis, settings=Settings())

        assert await service.send_email(EMAIL.model_copy(update={"to": "A@example.com"})) is True
        assert await service.send_email(EMAIL) is False

        provider.send.assert_awaited_once()
        redis.expire.assert_awaited_once_with(EmailService.rate_limit_key("a@example.com"), 3600)
        keys = [call.args[0] for call in redis.incr.await_args_list]
        assert keys[0] == keys[1]

    @pytest.mark.asyncio
    async def test_streak_notification_renders_template(self):
        provider = MagicMock()
        provider.send = AsyncMock(return_value=True)
        service = EmailService(provider=provider, settings=Settings(frontend_base_url="https://play.test/"))

        assert await service.send_streak_expiry_notification("a@example.com", "Tess", 7, 2)

        (email,) = provider.send.await_args.args
        assert email.to == "a@example.com"
        assert email.subject == "Your 7-day streak ends in 2 hours"
        assert "https://play.test/play" in email.text_body
