from __future__ import annotations

import logging

from celery import shared_task
from django.conf import settings

from campaigns import quota, triggers
from campaigns.dispatch import dispatch_due_emails, dispatch_due_sms
from campaigns.exceptions import SendingNotConfigured
from campaigns.models import Campaign
from campaigns.sending import build_email_sender, build_sms_sender
from campaigns.stats import reconcile_stats

logger = logging.getLogger(__name__)


@shared_task
def dispatch_due_emails_task() -> int:
    summary = dispatch_due_emails(build_email_sender(), limit=settings.CAMPAIGN_DISPATCH_BATCH_SIZE)
    return summary.sent


@shared_task
def dispatch_due_sms_task() -> int:
    try:
        sender = build_sms_sender()
    except SendingNotConfigured as exc:
        logger.warning("SMS dispatch skipped: %s", exc)
        return 0
    summary = dispatch_due_sms(sender, limit=settings.CAMPAIGN_SMS_BATCH_SIZE)
    return summary.sent


@shared_task
def scan_class_reminders_task() -> int:
    return triggers.scan_class_reminders()


@shared_task
def scan_abandoned_bookings_task() -> int:
    return triggers.scan_abandoned_bookings()


@shared_task
def scan_inactive_users_task() -> int:
    return triggers.scan_inactive_users()


@shared_task
def scan_membership_expiring_task() -> int:
    return triggers.scan_membership_expiring()


@shared_task
def scan_credit_expiring_task() -> int:
    return triggers.scan_credit_expiring()


@shared_task
def reconcile_campaign_stats_task() -> int:
    """Recompute counters for every campaign; returns how many had drifted."""
    drifted = 0
    for campaign in Campaign.objects.all():
        if reconcile_stats(campaign):
            drifted += 1
    return drifted


@shared_task
def reset_daily_sms_usage_task() -> int:
    return quota.reset_daily_usage()
