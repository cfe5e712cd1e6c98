from __future__ import annotations

import logging
from typing import Any

from django.db import transaction
from django.db.models import Count, F
from django.utils import timezone

from campaigns.models import Campaign, DeliveryRecord, EngagementEvent
from campaigns.tracking import ClientSignals

logger = logging.getLogger(__name__)

RECENT_LIMIT = 10
TOP_LINKS_LIMIT = 5


def _lookup(token: str | None) -> tuple[int, int] | None:
    if not token:
        return None
    return DeliveryRecord.objects.filter(tracking_token=token).values_list("pk", "campaign_id").first()


def _event_fields(signals: ClientSignals | None) -> dict[str, str]:
    signals = signals or ClientSignals()
    return {
        "user_agent": signals.user_agent,
        "device_type": signals.device_type,
        "email_client_hint": signals.email_client_hint,
        "ip_address_truncated": signals.ip_address_truncated,
        "ip_hash": signals.ip_hash,
    }


def record_open(token: str | None, *, now=None, signals: ClientSignals | None = None) -> bool:
    """Count an open. Returns False (and changes nothing) for unknown tokens."""
    now = now or timezone.now()
    found = _lookup(token)
    if found is None:
        logger.debug("Open for unknown tracking token %r ignored", token)
        return False
    record_id, campaign_id = found

    with transaction.atomic():
        first_open = DeliveryRecord.objects.filter(pk=record_id, opened=False).update(
            opened=True,
            opened_at=now,
            open_count=F("open_count") + 1,
        )
        if not first_open:
            DeliveryRecord.objects.filter(pk=record_id).update(open_count=F("open_count") + 1)
        EngagementEvent.objects.create(
            delivery_id=record_id,
            event_type=EngagementEvent.EventType.OPEN,
            created_at=now,
            **_event_fields(signals),
        )
        if first_open:
            Campaign.objects.filter(pk=campaign_id).update(total_opened=F("total_opened") + 1)
    return True


def record_click(token: str | None, url: str, *, now=None, signals: ClientSignals | None = None) -> bool:
    """Count a click on ``url``. Returns False (and changes nothing) for unknown tokens."""
    now = now or timezone.now()
    found = _lookup(token)
    if found is None:
        logger.debug("Click for unknown tracking token %r ignored", token)
        return False
    record_id, campaign_id = found

    with transaction.atomic():
        first_click = DeliveryRecord.objects.filter(pk=record_id, clicked=False).update(
            clicked=True,
            clicked_at=now,
            click_count=F("click_count") + 1,
        )
        if not first_click:
            DeliveryRecord.objects.filter(pk=record_id).update(click_count=F("click_count") + 1)
        EngagementEvent.objects.create(
            delivery_id=record_id,
            event_type=EngagementEvent.EventType.CLICK,
            url=url,
            created_at=now,
            **_event_fields(signals),
        )
        if first_click:
            Campaign.objects.filter(pk=campaign_id).update(total_clicked=F("total_clicked") + 1)
    return True


def _percent(part: int, whole: int) -> float:
    if not whole:
        return 0.0
    return round(part * 100 / whole, 2)


def engagement_analytics(campaign: Campaign) -> dict[str, Any]:
    sent = DeliveryRecord.objects.filter(campaign=campaign, status=DeliveryRecord.Status.SENT)
    total_sent = sent.count()
    total_opened = sent.filter(opened=True).count()
    total_clicked = sent.filter(clicked=True).count()

    recent_opens = [
        {"email": row["recipient_email"], "opened_at": row["opened_at"], "open_count": row["open_count"]}
        for row in sent.filter(opened=True)
        .order_by("-opened_at")
        .values("recipient_email", "opened_at", "open_count")[:RECENT_LIMIT]
    ]

    clicks = EngagementEvent.objects.filter(
        delivery__in=sent,
        event_type=EngagementEvent.EventType.CLICK,
    )
    recent_clicks = [
        {"email": row["delivery__recipient_email"], "url": row["url"], "clicked_at": row["created_at"]}
        for row in clicks.order_by("-created_at").values("delivery__recipient_email", "url", "created_at")[
            :RECENT_LIMIT
        ]
    ]
    top_links = [
        {"url": row["url"], "clicks": row["clicks"]}
        for row in clicks.values("url").annotate(clicks=Count("id")).order_by("-clicks", "url")[:TOP_LINKS_LIMIT]
    ]

    return {
        "total_sent": total_sent,
        "total_opened": total_opened,
        "total_clicked": total_clicked,
        "open_rate": _percent(total_opened, total_sent),
        "click_rate": _percent(total_clicked, total_sent),
        "click_to_open_rate": _percent(total_clicked, total_opened),
        "recent_opens": recent_opens,
        "recent_clicks": recent_clicks,
        "top_links": top_links,
    }
