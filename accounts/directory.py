"""Lookups the campaign engine needs about a user: membership tier and list ids."""

from __future__ import annotations

from studio.models import MailingList, Membership


def current_membership(user) -> Membership | None:
    return (
        Membership.objects.filter(user=user, status__in=Membership.CURRENT_STATUSES)
        .order_by("-started_at")
        .first()
    )


def membership_tier_for(user) -> str | None:
    membership = current_membership(user)
    return membership.tier if membership else None


def list_ids_for(user) -> list[int]:
    return list(MailingList.objects.filter(members=user).values_list("id", flat=True))
