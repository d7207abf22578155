"""Credential emails.

Sends the welcome email carrying a newly generated password, and the
password-reset email. Delivery is best effort: every public method returns a
NotificationResult and never raises, because an account must not be rolled
back just because its email bounced. No retries and no deduplication;
re-running a workflow can send the same email twice.

SMTP is blocking, so transport calls run in a worker thread.
"""

import asyncio
import secrets
import smtplib
import socket
import ssl
from dataclasses import dataclass
from email.message import EmailMessage

from jinja2 import Environment, PackageLoader, select_autoescape

from secureplace.config import SMTPConfig
from secureplace.logging_config import get_logger

logger = get_logger(__name__)

IMPLICIT_TLS_PORT = 465


@dataclass(frozen=True, slots=True)
class NotificationResult:
    """Outcome of one email.

    Attributes:
        success: Whether the email was accepted by the SMTP server.
        error: Human-readable reason when it was not.
        message_id: Message-ID header of the sent email.
    """

    success: bool
    error: str | None = None
    message_id: str | None = None


@dataclass(frozen=True)
class WelcomeEmail:
    name: str
    email: str
    password: str
    firm_name: str
    login_url: str


@dataclass(frozen=True)
class PasswordResetEmail:
    name: str
    email: str
    password: str
    firm_name: str


class SMTPTransport:
    """Blocking SMTP transport: ``verify()`` checks the server and credentials,
    ``send()`` delivers one message. Each call uses its own connection."""

    def __init__(self, config: SMTPConfig) -> None:
        self._config = config

    def _connect(self) -> smtplib.SMTP:
        host = self._config.host or ""
        port = self._config.port or 0
        timeout = self._config.timeout_seconds
        context = ssl.create_default_context()

        if port == IMPLICIT_TLS_PORT:
            server: smtplib.SMTP = smtplib.SMTP_SSL(host, port, timeout=timeout, context=context)
        else:
            server = smtplib.SMTP(host, port, timeout=timeout)
            server.ehlo()
            if server.has_extn("starttls"):
                server.starttls(context=context)
                server.ehlo()

        try:
            server.login(self._config.user or "", self._config.password or "")
        except Exception:
            server.close()
            raise
        return server

    def verify(self) -> None:
        """Connect and authenticate, then disconnect.

        Raises:
            smtplib.SMTPAuthenticationError: Credentials rejected.
            OSError | smtplib.SMTPException: Server unreachable or misbehaving.
        """
        server = self._connect()
        try:
            server.noop()
        finally:
            server.quit()

    def send(self, message: EmailMessage) -> str:
        """Deliver a message and return its Message-ID."""
        server = self._connect()
        try:
            server.send_message(message)
        finally:
            server.quit()
        return message["Message-ID"]


def describe_smtp_error(exc: BaseException) -> str:
    """Turn a transport exception into the text shown to administrators."""
    if isinstance(exc, smtplib.SMTPAuthenticationError):
        return (
            "SMTP authentication failed. Check the SMTP user and password; "
            "Gmail accounts need an App Password instead of the account password."
        )
    if isinstance(exc, socket.gaierror):
        return "SMTP server not found. Check the SMTP host setting."
    if isinstance(exc, ConnectionRefusedError):
        return "Connection refused. Check the SMTP host and port settings."
    if isinstance(exc, TimeoutError):
        return "SMTP connection timed out. Check the SMTP host and port settings."
    return f"SMTP connection failed: {exc}"


class Notifier:
    """Renders and sends credential emails."""

    def __init__(
        self,
        config: SMTPConfig,
        transport: SMTPTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport or SMTPTransport(config)
        self._env = Environment(
            loader=PackageLoader("secureplace", "templates/email"),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def missing_settings(self) -> list[str]:
        """Names of required SMTP settings that are not configured."""
        required = {
            "host": self._config.host,
            "port": self._config.port,
            "user": self._config.user,
            "password": self._config.password,
        }
        return [name for name, value in required.items() if not value]

    async def send_welcome(self, welcome: WelcomeEmail) -> NotificationResult:
        """Send login credentials to a newly provisioned employee."""
        context = {
            "name": welcome.name,
            "email": welcome.email,
            "password": welcome.password,
            "firm_name": welcome.firm_name,
            "login_url": welcome.login_url,
        }
        return await self._deliver(
            to_email=welcome.email,
            from_name=welcome.firm_name,
            subject=f"Welcome to {welcome.firm_name} - Your Account Details",
            template="welcome",
            context=context,
        )

    async def send_password_reset(self, reset: PasswordResetEmail) -> NotificationResult:
        """Send a replacement password chosen by an administrator."""
        context = {
            "name": reset.name,
            "email": reset.email,
            "password": reset.password,
            "firm_name": reset.firm_name,
        }
        return await self._deliver(
            to_email=reset.email,
            from_name=reset.firm_name,
            subject=f"Password Reset - {reset.firm_name}",
            template="password_reset",
            context=context,
        )

    def _build_message(
        self, *, to_email: str, from_name: str, subject: str, template: str, context: dict
    ) -> EmailMessage:
        text_body = self._env.get_template(f"{template}.txt").render(**context)
        html_body = self._env.get_template(f"{template}.html").render(**context)

        sender = self._config.user or ""
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = f'"{self._config.from_name or from_name}" <{sender}>'
        message["To"] = to_email
        domain = sender.rpartition("@")[2] or "localhost"
        message["Message-ID"] = f"<{secrets.token_hex(16)}@{domain}>"
        message.set_content(text_body)
        message.add_alternative(html_body, subtype="html")
        return message

    async def _deliver(
        self, *, to_email: str, from_name: str, subject: str, template: str, context: dict
    ) -> NotificationResult:
        missing = self.missing_settings()
        if missing:
            error = f"Email configuration incomplete. Missing settings: {', '.join(missing)}"
            logger.error("Email not sent", template=template, error=error)
            return NotificationResult(success=False, error=error)

        try:
            await asyncio.to_thread(self._transport.verify)
        except Exception as e:
            error = describe_smtp_error(e)
            logger.error("SMTP verification failed", template=template, error=error)
            return NotificationResult(success=False, error=error)

        try:
            message = self._build_message(
                to_email=to_email,
                from_name=from_name,
                subject=subject,
                template=template,
                context=context,
            )
            message_id = await asyncio.to_thread(self._transport.send, message)
        except Exception as e:
            error = describe_smtp_error(e)
            logger.error("Failed to send email", template=template, error=error)
            return NotificationResult(success=False, error=error)

        logger.info("Email sent", template=template, message_id=message_id)
        return NotificationResult(success=True, message_id=message_id)
