"""Tests for credential emails."""

import smtplib
import socket
from unittest.mock import MagicMock

import pytest

from secureplace.config import SMTPConfig
from secureplace.services.notifications import (
    Notifier,
    PasswordResetEmail,
    WelcomeEmail,
    describe_smtp_error,
)

CONFIG = SMTPConfig(host="smtp.example.com", port=587, user="noreply@example.com", password="pw")

WELCOME = WelcomeEmail(
    name="Jane Doe",
    email="jane@example.com",
    password="Abc1!xyzXYZ9",
    firm_name="Acme Safety",
    login_url="https://secureplace.example.com/",
)


@pytest.fixture
def transport() -> MagicMock:
    transport = MagicMock()
    transport.send.side_effect = lambda message: message["Message-ID"]
    return transport


class TestConfiguration:
    @pytest.mark.asyncio
    async def test_missing_settings_skip_connection(self, transport):
        notifier = Notifier(SMTPConfig(host=None, user=None, password=None), transport=transport)

        result = await notifier.send_welcome(WELCOME)

        assert not result.success
        assert result.error.startswith("Email configuration incomplete. Missing settings:")
        assert "host" in result.error and "password" in result.error
        transport.verify.assert_not_called()
        transport.send.assert_not_called()

    def test_missing_settings_listed(self):
        notifier = Notifier(SMTPConfig(host="smtp.example.com", user="u", password=None))
        assert notifier.missing_settings() == ["password"]


class TestDelivery:
    @pytest.mark.asyncio
    async def test_welcome_email(self, transport):
        notifier = Notifier(CONFIG, transport=transport)

        result = await notifier.send_welcome(WELCOME)

        assert result.success
        assert result.error is None
        transport.verify.assert_called_once()
        message = transport.send.call_args.args[0]
        assert result.message_id == message["Message-ID"]
        assert message["To"] == "jane@example.com"
        assert message["Subject"] == "Welcome to Acme Safety - Your Account Details"
        assert "Acme Safety" in message["From"]
        text = message.get_body(preferencelist=("plain",)).get_content()
        assert "Abc1!xyzXYZ9" in text
        assert "https://secureplace.example.com/" in text
        html = message.get_body(preferencelist=("html",)).get_content()
        assert "Jane Doe" in html

    @pytest.mark.asyncio
    async def test_password_reset_email(self, transport):
        notifier = Notifier(CONFIG, transport=transport)

        result = await notifier.send_password_reset(
            PasswordResetEmail(
                name="Jane Doe",
                email="jane@example.com",
                password="Zz9@abcdEFGH",
                firm_name="Acme Safety",
            )
        )

        assert result.success
        message = transport.send.call_args.args[0]
        assert message["Subject"] == "Password Reset - Acme Safety"
        assert "Zz9@abcdEFGH" in message.get_body(preferencelist=("plain",)).get_content()

    @pytest.mark.asyncio
    async def test_authentication_failure(self, transport):
        transport.verify.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
        notifier = Notifier(CONFIG, transport=transport)

        result = await notifier.send_welcome(WELCOME)

        assert not result.success
        assert "authentication failed" in result.error
        transport.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_send_failure_never_raises(self, transport):
        transport.send.side_effect = smtplib.SMTPRecipientsRefused({"jane@example.com": (550, b"no")})
        notifier = Notifier(CONFIG, transport=transport)

        result = await notifier.send_welcome(WELCOME)

        assert not result.success
        assert result.error.startswith("SMTP connection failed")


class TestDescribeError:
    def test_distinct_texts(self):
        texts = {
            describe_smtp_error(smtplib.SMTPAuthenticationError(535, b"no")),
            describe_smtp_error(socket.gaierror(-2, "Name or service not known")),
            describe_smtp_error(ConnectionRefusedError()),
            describe_smtp_error(TimeoutError()),
            describe_smtp_error(OSError("boom")),
        }
        assert len(texts) == 5

    def test_host_not_found(self):
        assert "not found" in describe_smtp_error(socket.gaierror(-2, "unknown"))
