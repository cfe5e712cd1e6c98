"""Outbound email and SMS transports used by the dispatch loops.

Senders are plain objects built once per dispatch run and passed in; they
never raise for delivery problems and always hand back a ``SendOutcome`` the
caller must record.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from django.conf import settings
from django.core.mail import EmailMultiAlternatives, get_connection
from django.utils.html import strip_tags
from twilio.base.exceptions import TwilioRestException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from campaigns.exceptions import SendingNotConfigured

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SendOutcome:
    success: bool
    provider_id: str = ""
    error: str = ""

    @classmethod
    def ok(cls, provider_id: str = "") -> SendOutcome:
        return cls(success=True, provider_id=provider_id)

    @classmethod
    def failed(cls, error: str) -> SendOutcome:
        return cls(success=False, error=error or "Unknown error")


class EmailSender:
    def __init__(self, *, from_email: str | None = None, timeout: int | None = None, backend: str | None = None):
        self.from_email = from_email or settings.DEFAULT_FROM_EMAIL
        self.timeout = timeout if timeout is not None else settings.CAMPAIGN_SEND_TIMEOUT
        self.backend = backend

    def send_email(self, to: str, subject: str, html: str) -> SendOutcome:
        message = EmailMultiAlternatives(
            subject=subject,
            body=strip_tags(html),
            from_email=self.from_email,
            to=[to],
            connection=get_connection(self.backend, timeout=self.timeout),
        )
        message.attach_alternative(html, "text/html")
        try:
            message.send(fail_silently=False)
        except Exception as exc:  # noqa: BLE001 - transport errors become outcomes
            logger.warning("Email to %s failed: %s", to, exc)
            return SendOutcome.failed(str(exc) or exc.__class__.__name__)
        return SendOutcome.ok()


def format_phone_number(phone: str | None) -> str | None:
    """Normalise a phone number to E.164, assuming US numbers when no country code is given."""
    if not phone:
        return None
    digits = re.sub(r"\D", "", phone)
    if len(digits) < 10:
        return None
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    if phone.strip().startswith("+"):
        return f"+{digits}"
    return f"+1{digits}"


class TwilioSmsSender:
    def __init__(self, account_sid: str, auth_token: str, from_number: str, *, timeout: int | None = None, client=None):
        self.from_number = from_number
        timeout = timeout if timeout is not None else settings.CAMPAIGN_SEND_TIMEOUT
        self.client = client or Client(
            account_sid,
            auth_token,
            http_client=TwilioHttpClient(timeout=timeout),
        )

    def send_sms(self, to_phone: str, body: str) -> SendOutcome:
        formatted = format_phone_number(to_phone)
        if not formatted:
            return SendOutcome.failed("Invalid phone number format")
        try:
            message = self.client.messages.create(to=formatted, from_=self.from_number, body=body)
        except TwilioRestException as exc:
            logger.warning("Twilio error sending to %s: %s", formatted, exc.msg)
            return SendOutcome.failed(f"Twilio error: {exc.msg}")
        except Exception as exc:  # noqa: BLE001 - network errors and timeouts become outcomes
            logger.warning("SMS to %s failed: %s", formatted, exc)
            return SendOutcome.failed(str(exc) or exc.__class__.__name__)
        logger.info("SMS sent: %s to %s", message.sid, formatted)
        return SendOutcome.ok(provider_id=message.sid)


def build_email_sender() -> EmailSender:
    return EmailSender()


def build_sms_sender() -> TwilioSmsSender:
    if not settings.SMS_ENABLED:
        raise SendingNotConfigured("SMS is disabled (SMS_ENABLED is off).")
    if not (settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN):
        raise SendingNotConfigured("Twilio credentials are not configured.")
    if not settings.TWILIO_PHONE_NUMBER:
        raise SendingNotConfigured("TWILIO_PHONE_NUMBER is not configured.")
    return TwilioSmsSender(
        settings.TWILIO_ACCOUNT_SID,
        settings.TWILIO_AUTH_TOKEN,
        settings.TWILIO_PHONE_NUMBER,
    )
