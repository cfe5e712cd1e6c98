from __future__ import annotations

import logging
from dataclasses import dataclass

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from accounts.directory import current_membership
from campaigns.triggers import on_milestone_achieved, on_post_class
from studio.models import Booking, Membership

logger = logging.getLogger(__name__)

MILESTONE_REWARDS = {
    50: "Sweat towel",
    100: "Tote bag",
    150: "Water bottle",
    200: "Hat",
    250: "Hoodie",
}


@dataclass(frozen=True)
class CheckInResult:
    booking: Booking
    membership: Membership | None
    milestone: int | None = None
    reward: str | None = None


def next_milestone_reward(membership: Membership) -> tuple[int, str] | None:
    for milestone in sorted(MILESTONE_REWARDS):
        if membership.classes_attended >= milestone and membership.last_reward_milestone < milestone:
            return milestone, MILESTONE_REWARDS[milestone]
    return None


def check_in(booking: Booking, *, now=None) -> CheckInResult:
    """Mark a booking attended and fire the post-class and milestone triggers."""
    now = now or timezone.now()
    if booking.checked_in:
        raise ValidationError("Booking is already checked in.")

    milestone = reward = None
    with transaction.atomic():
        booking.checked_in = True
        booking.checked_in_at = now
        booking.save(update_fields=["checked_in", "checked_in_at"])

        membership = current_membership(booking.user)
        if membership is not None:
            membership.classes_attended += 1
            membership.last_class_date = now
            earned = next_milestone_reward(membership)
            if earned:
                milestone, reward = earned
                membership.last_reward_milestone = milestone
            membership.save(update_fields=["classes_attended", "last_class_date", "last_reward_milestone"])

    logger.info("Checked in booking %s for user %s", booking.pk, booking.user_id)
    on_post_class(booking.user, booking.event, now=now)
    if milestone is not None:
        logger.info("User %s reached milestone %s (%s)", booking.user_id, milestone, reward)
        on_milestone_achieved(booking.user, milestone, reward, now=now)
    return CheckInResult(booking=booking, membership=membership, milestone=milestone, reward=reward)
