from __future__ import annotations

import logging

from django.db import transaction
from django.db.models import Count, Q

from campaigns.models import Campaign, DeliveryRecord

logger = logging.getLogger(__name__)

COUNTER_FIELDS = (
    "total_triggered",
    "total_sent",
    "total_failed",
    "total_opened",
    "total_clicked",
    "total_sms_sent",
    "total_sms_failed",
)


def recompute_stats(campaign: Campaign) -> dict[str, int]:
    """Derive every campaign counter from its delivery records."""
    Status = DeliveryRecord.Status
    SmsStatus = DeliveryRecord.SmsStatus
    totals = DeliveryRecord.objects.filter(campaign=campaign).aggregate(
        total_triggered=Count("enrollment_id", distinct=True),
        total_sent=Count("id", filter=Q(status=Status.SENT)),
        total_failed=Count("id", filter=Q(status=Status.FAILED)),
        total_opened=Count("id", filter=Q(opened=True)),
        total_clicked=Count("id", filter=Q(clicked=True)),
        total_sms_sent=Count("id", filter=Q(sms_status=SmsStatus.SENT)),
        total_sms_failed=Count("id", filter=Q(sms_status=SmsStatus.FAILED)),
    )
    return {field: totals[field] or 0 for field in COUNTER_FIELDS}


def reconcile_stats(campaign: Campaign) -> dict[str, tuple[int, int]]:
    """Overwrite drifted counters with values recomputed from the records.

    The campaign row stays locked from the recount to the write, so concurrent
    counter increments wait instead of being overwritten.

    Returns the drifted fields mapped to (stored, recomputed).
    """
    with transaction.atomic():
        locked = Campaign.objects.select_for_update().get(pk=campaign.pk)
        recomputed = recompute_stats(locked)
        drift = {
            field: (getattr(locked, field), value)
            for field, value in recomputed.items()
            if getattr(locked, field) != value
        }
        if drift:
            logger.warning("Campaign %s counters drifted, reconciling: %s", locked.pk, drift)
            Campaign.objects.filter(pk=locked.pk).update(**recomputed)
    for field, value in recomputed.items():
        setattr(campaign, field, value)
    return drift
