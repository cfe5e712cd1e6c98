from __future__ import annotations

import logging
import uuid
from typing import Any

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from campaigns.models import Campaign, DeliveryRecord

logger = logging.getLogger(__name__)


def has_active_enrollment(campaign: Campaign, user) -> bool:
    return DeliveryRecord.objects.filter(
        campaign=campaign,
        recipient=user,
        status__in=DeliveryRecord.ACTIVE_STATUSES,
    ).exists()


def schedule_for_user(
    campaign: Campaign,
    user,
    email: str,
    trigger_context: dict[str, Any] | None = None,
    *,
    now=None,
) -> list[DeliveryRecord] | None:
    """Enroll ``user`` in every step of ``campaign``.

    Each step is due at ``now`` plus its own delay; delays are not chained to
    the previous step. Returns ``None`` without writing anything when the user
    already has a scheduled or sent record for the campaign. Either every step
    is persisted or none is.
    """
    now = now or timezone.now()
    steps = campaign.steps
    if not steps:
        logger.warning("Campaign %s has no sequence steps; nothing to schedule", campaign.pk)
        return None

    enrollment_id = uuid.uuid4()
    context = dict(trigger_context or {})
    try:
        with transaction.atomic():
            Campaign.objects.select_for_update().filter(pk=campaign.pk).first()
            if has_active_enrollment(campaign, user):
                logger.info("Campaign %s already scheduled for user %s", campaign.pk, user.pk)
                return None

            records = DeliveryRecord.objects.bulk_create(
                [
                    DeliveryRecord(
                        campaign=campaign,
                        recipient=user,
                        recipient_email=email,
                        step_number=step.step_number,
                        enrollment_id=enrollment_id,
                        trigger_context=context,
                        scheduled_for=now + step.delay,
                        status=DeliveryRecord.Status.SCHEDULED,
                        created_at=now,
                    )
                    for step in steps
                ]
            )
            Campaign.objects.filter(pk=campaign.pk).update(
                total_triggered=F("total_triggered") + 1,
                last_triggered_at=now,
            )
    except IntegrityError:
        logger.info("Concurrent enrollment for campaign %s and user %s; skipping", campaign.pk, user.pk)
        return None

    logger.info(
        "Scheduled %s step(s) of campaign %s for user %s (enrollment %s)",
        len(records),
        campaign.pk,
        user.pk,
        enrollment_id,
    )
    return records
