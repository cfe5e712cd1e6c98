"""Keyword handling for inbound SMS replies (STOP, START, HELP)."""

from __future__ import annotations

import logging

from django.conf import settings
from django.contrib.auth import get_user_model

from auditing.models import AuditLog
from campaigns.sending import format_phone_number

logger = logging.getLogger(__name__)

OPT_OUT_KEYWORDS = frozenset({"STOP", "STOPALL", "UNSUBSCRIBE", "CANCEL", "END", "QUIT"})
OPT_IN_KEYWORDS = frozenset({"START", "SUBSCRIBE", "UNSTOP", "YES"})
HELP_KEYWORDS = frozenset({"HELP", "INFO"})


def find_user_by_phone(phone: str):
    """Match a sender number against stored phones, which may be in any format."""
    formatted = format_phone_number(phone)
    if not formatted:
        return None
    User = get_user_model()
    for user in User.objects.filter(phone__endswith=formatted[-4:]).order_by("pk"):
        if format_phone_number(user.phone) == formatted:
            return user
    return None


def _set_opt_in(user, opted_in: bool) -> None:
    if user.sms_opt_in != opted_in:
        user.sms_opt_in = opted_in
        user.save(update_fields=["sms_opt_in"])
    AuditLog.record("sms_opt_in" if opted_in else "sms_opt_out", actor=user, obj=user, source="sms_reply")
    logger.info("User %s opted %s SMS by reply", user.pk, "into" if opted_in else "out of")


def handle_reply(from_phone: str, body: str) -> str:
    """Apply the keyword in an inbound message and return the reply text."""
    keyword = (body or "").strip().upper()
    studio = settings.STUDIO_NAME

    if keyword in OPT_OUT_KEYWORDS:
        user = find_user_by_phone(from_phone)
        if user is None:
            logger.warning("Opt-out from unknown number %s", from_phone)
            return f"You have been unsubscribed from {studio} SMS notifications."
        _set_opt_in(user, False)
        return (
            f"You have been unsubscribed from {studio} SMS notifications. "
            "You will not receive any more messages. Reply START to re-subscribe."
        )

    if keyword in OPT_IN_KEYWORDS:
        user = find_user_by_phone(from_phone)
        if user is None:
            logger.warning("Opt-in from unknown number %s", from_phone)
            return f"You have been subscribed to {studio} SMS notifications. Reply STOP to unsubscribe."
        _set_opt_in(user, True)
        return f"Welcome back! You have been re-subscribed to {studio} SMS notifications. Reply STOP to unsubscribe."

    if keyword in HELP_KEYWORDS:
        return (
            f"{studio}\nReply STOP to unsubscribe\nReply START to subscribe\n"
            f"For assistance: {settings.STUDIO_PHONE}\nVisit: {settings.SITE_BASE_URL}"
        )

    logger.info("Unhandled SMS reply from %s", from_phone)
    return (
        f"Thank you for your message. For booking and inquiries, please visit {settings.SITE_BASE_URL} "
        f"or call {settings.STUDIO_PHONE}. Reply STOP to unsubscribe."
    )
