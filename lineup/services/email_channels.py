"""Delivery channels for the lineup email.

The active channel is chosen by ``EmailSettings.email_method``. Every channel
sends one message: the first recipient is the visible ``To`` address and the
remaining recipients are blind copies, so no recipient sees the full list.
"""

from __future__ import annotations

import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from enum import Enum
from typing import Sequence

import requests
from requests import RequestException

from lineup.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 30
MAILGUN_API_BASE = "https://api.mailgun.net/v3"
MAILGUN_EU_API_BASE = "https://api.eu.mailgun.net/v3"
INTERNAL_RELAY_HOST = "localhost"
INTERNAL_RELAY_PORT = 25
SMTP_SSL_PORT = 465


class EmailMethod(str, Enum):
    SMTP = "smtp"
    MAILGUN = "mailgun"
    INTERNAL_SERVER = "internal_server"
    GMAIL_API = "gmail_api"


class EmailConfigurationError(ValueError):
    """Raised when the delivery settings cannot be used as configured."""


class UnsupportedEmailMethod(EmailConfigurationError):
    def __init__(self, method: object):
        super().__init__(f"Unsupported email method: {method}")
        self.method = method


class EmailDeliveryError(RuntimeError):
    """Raised when a transport rejects or fails to deliver the message."""

    def __init__(self, method: EmailMethod, message: str):
        super().__init__(message)
        self.method = method


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    message_id: str | None
    method: str


_BASE_REQUIRED_FIELDS = ("sender_email", "sender_name")
_METHOD_REQUIRED_FIELDS: dict[EmailMethod, tuple[str, ...]] = {
    EmailMethod.SMTP: ("smtp_host", "smtp_port", "smtp_user", "smtp_password"),
    EmailMethod.MAILGUN: ("mailgun_api_key", "mailgun_domain"),
    EmailMethod.INTERNAL_SERVER: (),
    EmailMethod.GMAIL_API: (),
}


def parse_email_method(value: object) -> EmailMethod:
    if isinstance(value, EmailMethod):
        return value
    try:
        return EmailMethod(str(value or "").strip().lower())
    except ValueError as exc:
        raise UnsupportedEmailMethod(value) from exc


def validate_email_settings(settings: object) -> list[str]:
    """Return the names of required settings that are empty for the method.

    Unknown methods only get the sender checks; they are rejected later when
    the channel is resolved.
    """

    missing = [field for field in _BASE_REQUIRED_FIELDS if not getattr(settings, field, None)]
    try:
        method = parse_email_method(getattr(settings, "email_method", None))
    except UnsupportedEmailMethod:
        return missing
    missing.extend(
        field for field in _METHOD_REQUIRED_FIELDS[method] if not getattr(settings, field, None)
    )
    return missing


def split_recipients(recipients: Sequence[str]) -> tuple[str, list[str]]:
    addresses = [address for address in recipients if address]
    if not addresses:
        raise EmailConfigurationError("No recipient emails found")
    return addresses[0], addresses[1:]


def build_message(
    sender: str,
    recipients: Sequence[str],
    subject: str,
    html: str,
    *,
    extra_headers: dict[str, str] | None = None,
) -> tuple[EmailMessage, list[str]]:
    """Build the MIME message and the SMTP envelope recipient list.

    Blind copies only appear in the envelope, never in the headers.
    """

    primary, blind = split_recipients(recipients)
    message = EmailMessage()
    message["From"] = sender
    message["To"] = primary
    message["Subject"] = subject
    message["Message-ID"] = make_msgid()
    for header, value in (extra_headers or {}).items():
        message[header] = value
    message.set_content(html, subtype="html", charset="utf-8")
    return message, [primary, *blind]


class EmailChannel:
    """Base delivery channel."""

    method: EmailMethod

    def send(
        self,
        settings: object,
        recipients: Sequence[str],
        subject: str,
        html: str,
    ) -> DeliveryResult:  # pragma: no cover - interface
        raise NotImplementedError


class SmtpChannel(EmailChannel):
    method = EmailMethod.SMTP

    def _connection_params(self, settings: object) -> tuple[str, int, str | None, str | None]:
        return (
            settings.smtp_host,
            int(settings.smtp_port),
            settings.smtp_user,
            settings.smtp_password,
        )

    def _sender(self, settings: object) -> str:
        # Relays reject a From domain that differs from the authenticated user
        return formataddr((settings.sender_name, settings.smtp_user))

    def _extra_headers(self) -> dict[str, str]:
        return {}

    def _open(self, host: str, port: int) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if port == SMTP_SSL_PORT:
            return smtplib.SMTP_SSL(host, port, timeout=DEFAULT_TIMEOUT, context=context)
        server = smtplib.SMTP(host, port, timeout=DEFAULT_TIMEOUT)
        server.ehlo()
        if server.has_extn("starttls"):
            server.starttls(context=context)
            server.ehlo()
        return server

    def send(self, settings, recipients, subject, html) -> DeliveryResult:
        host, port, user, password = self._connection_params(settings)
        message, envelope = build_message(
            self._sender(settings),
            recipients,
            subject,
            html,
            extra_headers=self._extra_headers(),
        )

        logger.info("[SMTP] Connecting to %s:%s (method=%s)", host, port, self.method.value)
        try:
            with self._open(host, port) as server:
                if user:
                    server.login(user, password or "")
                code, _ = server.noop()
                if code != 250:
                    raise EmailDeliveryError(
                        self.method, f"SMTP connection verification failed with code {code}"
                    )
                refused = server.send_message(message, to_addrs=envelope)
        except EmailDeliveryError:
            raise
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailDeliveryError(self.method, f"SMTP error: {exc}") from exc

        if refused:
            logger.warning("[SMTP] Recipients refused: %s", ", ".join(sorted(refused)))

        message_id = message["Message-ID"]
        logger.info(
            "[SMTP] Email sent",
            extra={"message_id": message_id, "recipients": len(envelope), "method": self.method.value},
        )
        return DeliveryResult(success=True, message_id=message_id, method=self.method.value)


class InternalServerChannel(SmtpChannel):
    """Unauthenticated relay running next to the worker."""

    method = EmailMethod.INTERNAL_SERVER

    def _connection_params(self, settings):
        return INTERNAL_RELAY_HOST, INTERNAL_RELAY_PORT, None, None

    def _sender(self, settings) -> str:
        return formataddr((settings.sender_name, settings.sender_email))

    def _extra_headers(self) -> dict[str, str]:
        return {"X-Mailer": "Lineup Mailer - Internal Server", "X-Priority": "3"}

    def _open(self, host: str, port: int) -> smtplib.SMTP:
        server = smtplib.SMTP(host, port, timeout=DEFAULT_TIMEOUT)
        server.ehlo()
        return server


class MailgunChannel(EmailChannel):
    method = EmailMethod.MAILGUN

    def send(self, settings, recipients, subject, html) -> DeliveryResult:
        api_base = MAILGUN_EU_API_BASE if settings.is_eu_region else MAILGUN_API_BASE
        primary, blind = split_recipients(recipients)

        data = {
            "from": formataddr((settings.sender_name, settings.sender_email)),
            "to": primary,
            "subject": subject,
            "html": html,
        }
        if blind:
            data["bcc"] = ",".join(blind)

        logger.info(
            "[MAILGUN] Sending via %s region to domain %s",
            "EU" if settings.is_eu_region else "US",
            settings.mailgun_domain,
        )
        try:
            response = requests.post(
                f"{api_base}/{settings.mailgun_domain}/messages",
                auth=("api", settings.mailgun_api_key),
                data=data,
                timeout=DEFAULT_TIMEOUT,
            )
        except RequestException as exc:
            raise EmailDeliveryError(self.method, f"Mailgun request failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise EmailDeliveryError(
                self.method,
                f"Mailgun API error: {response.status_code} - {response.text}",
            )

        # The message is accepted at this point; a malformed body only loses the id
        try:
            payload = response.json()
        except ValueError:
            payload = None
        message_id = payload.get("id") if isinstance(payload, dict) else None
        return DeliveryResult(success=True, message_id=message_id, method=self.method.value)


class GmailApiChannel(EmailChannel):
    """OAuth delivery through the Gmail API.

    The OAuth token exchange lives in the admin application; this worker has
    no way to refresh tokens, so the channel fails explicitly.
    """

    method = EmailMethod.GMAIL_API

    def send(self, settings, recipients, subject, html) -> DeliveryResult:
        raise EmailDeliveryError(
            self.method,
            "Gmail API is not implemented in the dispatcher. Please use SMTP or Mailgun.",
        )


_CHANNELS: dict[EmailMethod, EmailChannel] = {
    EmailMethod.SMTP: SmtpChannel(),
    EmailMethod.MAILGUN: MailgunChannel(),
    EmailMethod.INTERNAL_SERVER: InternalServerChannel(),
    EmailMethod.GMAIL_API: GmailApiChannel(),
}


def get_channel(method: object) -> EmailChannel:
    return _CHANNELS[parse_email_method(method)]


__all__ = [
    "DeliveryResult",
    "EmailChannel",
    "EmailConfigurationError",
    "EmailDeliveryError",
    "EmailMethod",
    "GmailApiChannel",
    "InternalServerChannel",
    "MailgunChannel",
    "SmtpChannel",
    "UnsupportedEmailMethod",
    "build_message",
    "get_channel",
    "parse_email_method",
    "validate_email_settings",
]
