from django.test import SimpleTestCase

from campaigns.models import Campaign
from campaigns.targeting import should_target


def _campaign(audience: dict, *, is_active: bool = True) -> Campaign:
    return Campaign(name="Targeted", is_active=is_active, target_audience=audience)


class ShouldTargetTests(SimpleTestCase):
    def test_inactive_campaign_targets_nobody(self) -> None:
        self.assertFalse(should_target(_campaign({"target_type": "all"}, is_active=False), 1, "outbreak"))

    def test_all_and_include_all(self) -> None:
        self.assertTrue(should_target(_campaign({"target_type": "all"}), 1, None))
        self.assertTrue(should_target(_campaign({"include_all": True}), 1, None))

    def test_membership_tiers(self) -> None:
        campaign = _campaign({"target_type": "memberships", "membership_tiers": ["outbreak"]})

        self.assertTrue(should_target(campaign, 1, "outbreak"))
        self.assertFalse(should_target(campaign, 1, "fever-starter"))
        self.assertFalse(should_target(campaign, 1, None))

    def test_all_tier_matches_users_without_membership(self) -> None:
        campaign = _campaign({"target_type": "memberships", "membership_tiers": ["all"]})

        self.assertTrue(should_target(campaign, 1, None))

    def test_lists_compare_ids_as_strings(self) -> None:
        campaign = _campaign({"target_type": "lists", "lists": ["4", 9]})

        self.assertTrue(should_target(campaign, 1, None, [4]))
        self.assertTrue(should_target(campaign, 1, None, ["9"]))
        self.assertFalse(should_target(campaign, 1, None, [5]))
        self.assertFalse(should_target(campaign, 1, None))

    def test_untyped_audience_falls_back_to_tiers(self) -> None:
        self.assertTrue(should_target(_campaign({"membership_tiers": ["epidemic"]}), 1, "epidemic"))
        self.assertFalse(should_target(_campaign({"membership_tiers": []}), 1, "epidemic"))
        self.assertFalse(should_target(_campaign({}), 1, "epidemic"))

    def test_unknown_target_type(self) -> None:
        self.assertFalse(should_target(_campaign({"target_type": "vip"}), 1, "epidemic"))
