"""Daily cap on outbound SMS.

Only successful sends count toward the cap. Days are local calendar days, so a
new day starts at zero even if the midnight reset did not run.
"""

from __future__ import annotations

import logging
from datetime import date

from django.conf import settings
from django.db.models import F
from django.utils import timezone

from campaigns.models import SmsDailyUsage

logger = logging.getLogger(__name__)

DAILY_LIMIT_REACHED = "Daily SMS limit reached"


def _today() -> date:
    return timezone.localdate()


def sms_sent_today(today: date | None = None) -> int:
    today = today or _today()
    return SmsDailyUsage.objects.filter(day=today).values_list("sent", flat=True).first() or 0


def daily_limit_reached(today: date | None = None) -> bool:
    limit = settings.SMS_DAILY_LIMIT
    if not limit:
        return False
    return sms_sent_today(today) >= limit


def count_sms_sent(today: date | None = None) -> None:
    today = today or _today()
    usage, _ = SmsDailyUsage.objects.get_or_create(day=today)
    SmsDailyUsage.objects.filter(pk=usage.pk).update(sent=F("sent") + 1)


def reset_daily_usage(today: date | None = None) -> int:
    """Start a fresh counter for today and drop earlier days. Returns yesterday's total."""
    today = today or _today()
    previous = SmsDailyUsage.objects.filter(day__lt=today).order_by("-day").values_list("sent", flat=True).first()
    SmsDailyUsage.objects.filter(day__lt=today).delete()
    SmsDailyUsage.objects.update_or_create(day=today, defaults={"sent": 0})
    logger.info("Daily SMS counter reset (previous day: %s sent)", previous or 0)
    return previous or 0
