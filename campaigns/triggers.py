"""Trigger evaluators: find who qualifies for each trigger kind and enroll them.

Periodic scans (``scan_*``) are run by Celery beat; ``on_*`` functions are called
synchronously from business events. Every evaluator can be re-run over the
same window because the scheduler refuses duplicate active enrollments.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from django.db.models import Q
from django.utils import timezone

from accounts.directory import current_membership, list_ids_for, membership_tier_for
from campaigns.exceptions import TriggerConfigError
from campaigns.models import Campaign
from campaigns.scheduling import schedule_for_user
from campaigns.targeting import should_target
from studio.models import Booking, Event, Membership

logger = logging.getLogger(__name__)

TriggerKind = Campaign.TriggerKind

REMINDER_WINDOW = timedelta(minutes=15)
ABANDONED_LOOKBACK = timedelta(hours=24)


def config_number(campaign: Campaign, key: str, default: int) -> int:
    config = campaign.trigger_config or {}
    if not isinstance(config, dict):
        raise TriggerConfigError(f"Campaign {campaign.pk} trigger_config is not an object")
    value = config.get(key)
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise TriggerConfigError(f"Campaign {campaign.pk} {key}={value!r} is not a number")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise TriggerConfigError(f"Campaign {campaign.pk} {key}={value!r} is not a number") from exc
    if number < 0:
        raise TriggerConfigError(f"Campaign {campaign.pk} {key}={value!r} is negative")
    return number


def active_campaigns(kind: str):
    return Campaign.objects.filter(trigger_kind=kind, is_active=True)


def enroll_in_campaign(campaign: Campaign, user, context: dict[str, Any], *, now=None) -> bool:
    """Target-check and schedule one user. Errors are logged, never raised."""
    if not user.email:
        return False
    try:
        if not should_target(campaign, user.pk, membership_tier_for(user), list_ids_for(user)):
            return False
        records = schedule_for_user(campaign, user, user.email, context, now=now)
    except Exception:  # noqa: BLE001 - one recipient never stops the batch
        logger.exception(
            "Failed to enroll user %s in campaign %s (%s)",
            user.pk,
            campaign.pk,
            campaign.trigger_kind,
        )
        return False
    return records is not None


def enroll_for_trigger(kind: str, user, context: dict[str, Any], *, now=None) -> int:
    enrolled = 0
    for campaign in active_campaigns(kind):
        if enroll_in_campaign(campaign, user, context, now=now):
            enrolled += 1
            logger.info("Scheduled campaign %r for user %s", campaign.name, user.pk)
    return enrolled


def _scan(kind: str, now, collect) -> int:
    """Run ``collect(campaign, now)`` for each active campaign of ``kind``.

    ``collect`` yields (user, context) pairs. A campaign whose trigger config
    is unusable is skipped with a warning.
    """
    enrolled = 0
    for campaign in active_campaigns(kind):
        try:
            candidates = list(collect(campaign, now))
        except TriggerConfigError as exc:
            logger.warning("Skipping campaign %s: %s", campaign.pk, exc)
            continue
        for user, context in candidates:
            if enroll_in_campaign(campaign, user, context, now=now):
                enrolled += 1
    logger.info("%s scan enrolled %s user(s)", kind, enrolled)
    return enrolled


def on_new_registration(user, *, now=None) -> int:
    now = now or timezone.now()
    return enroll_for_trigger(
        TriggerKind.NEW_REGISTRATION,
        user,
        {"user_name": user.get_full_name(), "registration_date": now},
        now=now,
    )


def _event_context(user, event: Event) -> dict[str, Any]:
    return {
        "user_name": user.get_full_name(),
        "event_title": event.title,
        "event_date": event.starts_at,
        "event_time": event.time_label,
        "event_location": event.location,
    }


def _class_reminder_candidates(campaign: Campaign, now):
    days = config_number(campaign, "days_before_event", 1)
    hours = config_number(campaign, "hours_before_event", 0)
    reminder_time = now + timedelta(days=days, hours=hours)
    bookings = Booking.objects.select_related("user", "event").filter(
        event__starts_at__gte=reminder_time - REMINDER_WINDOW,
        event__starts_at__lte=reminder_time + REMINDER_WINDOW,
        payment_status=Booking.PaymentStatus.COMPLETED,
        checked_in=False,
    )
    for booking in bookings:
        yield booking.user, _event_context(booking.user, booking.event)


def scan_class_reminders(*, now=None) -> int:
    return _scan(TriggerKind.CLASS_REMINDER, now or timezone.now(), _class_reminder_candidates)


def _inactive_candidates(campaign: Campaign, now):
    inactive_days = config_number(campaign, "inactive_days", 30)
    memberships = Membership.objects.select_related("user").filter(
        status__in=Membership.CURRENT_STATUSES,
        last_class_date__lt=now - timedelta(days=inactive_days),
    )
    for membership in memberships:
        yield membership.user, {
            "user_name": membership.user.get_full_name(),
            "last_class_date": membership.last_class_date,
            "inactive_days": inactive_days,
            "credits_remaining": membership.credits_remaining,
        }


def scan_inactive_users(*, now=None) -> int:
    return _scan(TriggerKind.INACTIVE_USER, now or timezone.now(), _inactive_candidates)


def _credit_expiring_candidates(campaign: Campaign, now):
    days = config_number(campaign, "days_before_expiry", 7)
    memberships = Membership.objects.select_related("user").filter(
        status__in=Membership.CURRENT_STATUSES,
        credits_remaining__gt=0,
        credits_expire_at__gte=now,
        credits_expire_at__lte=now + timedelta(days=days),
    )
    for membership in memberships:
        yield membership.user, {
            "user_name": membership.user.get_full_name(),
            "credits_remaining": membership.credits_remaining,
            "expiry_date": membership.credits_expire_at,
        }


def scan_credit_expiring(*, now=None) -> int:
    return _scan(TriggerKind.CREDIT_EXPIRING, now or timezone.now(), _credit_expiring_candidates)


def _membership_expiring_candidates(campaign: Campaign, now):
    days = config_number(campaign, "days_before_expiry", 7)
    window_end = now + timedelta(days=days)
    memberships = Membership.objects.select_related("user").filter(
        Q(cancellation_date__gte=now, cancellation_date__lte=window_end)
        | Q(
            cancellation_date__isnull=True,
            next_billing_date__gte=now,
            next_billing_date__lte=window_end,
        ),
        status__in=Membership.CURRENT_STATUSES,
    )
    for membership in memberships:
        yield membership.user, {
            "user_name": membership.user.get_full_name(),
            "membership_tier": membership.get_tier_display(),
            "expiry_date": membership.cancellation_date or membership.next_billing_date,
            "credits_remaining": membership.credits_remaining,
        }


def scan_membership_expiring(*, now=None) -> int:
    return _scan(TriggerKind.MEMBERSHIP_EXPIRING, now or timezone.now(), _membership_expiring_candidates)


def _abandoned_candidates(campaign: Campaign, now):
    hours = config_number(campaign, "abandoned_after_hours", 1)
    cutoff = now - timedelta(hours=hours)
    bookings = Booking.objects.select_related("user", "event").filter(
        payment_status=Booking.PaymentStatus.PENDING,
        created_at__lte=cutoff,
        created_at__gte=cutoff - ABANDONED_LOOKBACK,
        event__starts_at__gte=now,
    )
    for booking in bookings:
        completed = Booking.objects.filter(
            user=booking.user,
            event=booking.event,
            payment_status=Booking.PaymentStatus.COMPLETED,
        ).exists()
        if completed:
            continue
        yield booking.user, _event_context(booking.user, booking.event)


def scan_abandoned_bookings(*, now=None) -> int:
    return _scan(TriggerKind.ABANDONED_BOOKING, now or timezone.now(), _abandoned_candidates)


def on_milestone_achieved(user, milestone: int, reward: str, *, now=None) -> int:
    membership = current_membership(user)
    return enroll_for_trigger(
        TriggerKind.MILESTONE_ACHIEVED,
        user,
        {
            "user_name": user.get_full_name(),
            "milestone": milestone,
            "reward": reward,
            "total_classes": membership.classes_attended if membership else None,
        },
        now=now or timezone.now(),
    )


def on_post_class(user, event: Event, *, now=None) -> int:
    membership = current_membership(user)
    context = _event_context(user, event)
    context["classes_attended"] = membership.classes_attended if membership else None
    return enroll_for_trigger(TriggerKind.POST_CLASS, user, context, now=now or timezone.now())


def classpass_stage(booking_count: int, converted: bool) -> str | None:
    if booking_count == 1:
        return TriggerKind.CLASSPASS_FIRST_VISIT
    if booking_count == 2:
        return TriggerKind.CLASSPASS_SECOND_VISIT
    if booking_count >= 3 and not converted:
        return TriggerKind.CLASSPASS_HOT_LEAD
    return None


def on_classpass_booking(booking: Booking, *, now=None) -> int:
    """Advance the user through the ClassPass funnel after a ClassPass booking."""
    now = now or timezone.now()
    user = booking.user
    booking_count = Booking.objects.filter(user=user, booking_source=Booking.Source.CLASSPASS).count()
    stage = classpass_stage(booking_count, user.converted_to_member)
    if stage is None:
        return 0
    context = _event_context(user, booking.event)
    context["booking_count"] = booking_count
    context["acquisition_date"] = user.first_classpass_booking_at or booking.created_at
    return enroll_for_trigger(stage, user, context, now=now)
