from __future__ import annotations

import logging
from typing import Iterable

from campaigns.models import Campaign

logger = logging.getLogger(__name__)

ALL_TIERS = "all"


def _tier_matches(tiers: list, membership_tier: str | None) -> bool:
    if ALL_TIERS in tiers:
        return True
    return membership_tier is not None and membership_tier in tiers


def should_target(
    campaign: Campaign,
    user_id,
    membership_tier: str | None,
    user_list_ids: Iterable[int] = (),
) -> bool:
    """Decide whether a user falls inside the campaign's audience.

    Pure: the caller resolves the user's tier and list memberships.
    """
    if not campaign.is_active:
        return False

    audience = campaign.target_audience or {}
    target_type = audience.get("target_type")
    tiers = list(audience.get("membership_tiers") or [])

    if target_type == "all" or audience.get("include_all"):
        return True
    if target_type == "memberships":
        return _tier_matches(tiers, membership_tier)
    if target_type == "lists":
        configured = {str(list_id) for list_id in audience.get("lists") or []}
        matched = bool(configured & {str(list_id) for list_id in user_list_ids})
        if not matched:
            logger.debug("User %s is on none of campaign %s lists", user_id, campaign.pk)
        return matched
    if not target_type:
        return _tier_matches(tiers, membership_tier)
    return False
