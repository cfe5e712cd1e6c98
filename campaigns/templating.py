"""Placeholder substitution for campaign subjects, bodies and SMS text.

Templates use ``{{ variable }}`` placeholders. Names are matched without regard
to case and may be padded with whitespace inside the braces. Anything the
variable table cannot resolve is removed, so a missing value never leaks a raw
placeholder into a message.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Mapping

from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z][A-Za-z0-9_]*)\s*\}\}")
LEFTOVER_RE = re.compile(r"\{\{[^}]*\}\}")

SMS_MAX_LENGTH = 160


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _first(context: Mapping[str, Any], *keys: str) -> Any:
    """Return the first non-empty value, accepting snake_case or camelCase keys."""
    for key in keys:
        for candidate in (key, _camel(key)):
            value = context.get(candidate)
            if value is not None and value != "":
                return value
    return ""


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def format_date(value: Any) -> str:
    if value is None or value == "":
        return ""
    if isinstance(value, str):
        try:
            parsed = parse_datetime(value) or parse_date(value)
        except ValueError:
            parsed = None
        if parsed is None:
            return value
        value = parsed
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        value = value.date()
    if isinstance(value, date):
        return f"{value:%a}, {value:%b} {value.day}, {value.year}"
    return str(value)


def build_variables(context: Mapping[str, Any]) -> dict[str, str]:
    name = _text(_first(context, "name", "user_name"))
    classes = _text(_first(context, "classes_attended", "total_classes"))
    website = _text(getattr(settings, "SITE_BASE_URL", ""))
    variables = {
        "name": name,
        "userName": name,
        "firstName": name.split(" ")[0] if name else "",
        "email": _text(_first(context, "email", "user_email")),
        "phone": _text(_first(context, "phone", "user_phone")),
        "eventTitle": _text(_first(context, "event_title", "class_name")),
        "eventDate": format_date(_first(context, "event_date")),
        "eventTime": _text(_first(context, "event_time")),
        "eventLocation": _text(_first(context, "event_location", "location")),
        "creditsRemaining": _text(_first(context, "credits_remaining")),
        "expiryDate": format_date(_first(context, "expiry_date")),
        "lastClassDate": format_date(_first(context, "last_class_date")),
        "inactiveDays": _text(_first(context, "inactive_days")),
        "milestone": _text(_first(context, "milestone")),
        "reward": _text(_first(context, "reward")),
        "classesAttended": classes,
        "totalClasses": classes,
        "registrationDate": format_date(_first(context, "registration_date")),
        "bookingCount": _text(_first(context, "booking_count")),
        "acquisitionDate": format_date(_first(context, "acquisition_date")),
        "membershipTier": _text(_first(context, "membership_tier")),
        "studioName": _text(getattr(settings, "STUDIO_NAME", "")),
        "studioPhone": _text(getattr(settings, "STUDIO_PHONE", "")),
        "studioEmail": _text(getattr(settings, "STUDIO_EMAIL", "")),
        "websiteUrl": website,
        "studioWebsite": website,
    }
    return {key.lower(): value for key, value in variables.items()}


def render(template: str | None, context: Mapping[str, Any] | None = None) -> str:
    if not template:
        return ""
    variables = build_variables(context or {})
    rendered = PLACEHOLDER_RE.sub(lambda match: variables.get(match.group(1).lower(), ""), template)
    return LEFTOVER_RE.sub("", rendered)


def truncate_sms(message: str, max_length: int = SMS_MAX_LENGTH) -> str:
    if not message:
        return ""
    if len(message) <= max_length:
        return message
    return message[: max_length - 3].rstrip() + "..."
