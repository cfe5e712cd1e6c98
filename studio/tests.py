from datetime import timedelta

from django.core.exceptions import ValidationError
from django.test import TestCase
from django.utils import timezone

from accounts.models import User
from campaigns.models import Campaign, DeliveryRecord
from campaigns.sequence import normalize_sequence
from studio.models import Booking, Event, Membership
from studio.services import check_in, next_milestone_reward


class CheckInTests(TestCase):
    def setUp(self) -> None:
        self.owner = User.objects.create_user(username="owner", role=User.Role.ADMIN)
        self.member = User.objects.create_user(username="ana", email="ana@example.com", first_name="Ana")
        self.event = Event.objects.create(title="Hot Sculpt", starts_at=timezone.now() + timedelta(hours=1))
        self.booking = Booking.objects.create(
            user=self.member,
            event=self.event,
            payment_status=Booking.PaymentStatus.COMPLETED,
        )
        self.membership = Membership.objects.create(
            user=self.member,
            tier=Membership.Tier.OUTBREAK,
            status=Membership.Status.ACTIVE,
            classes_attended=49,
        )

    def _campaign(self, name: str, trigger_kind: str) -> Campaign:
        return Campaign.objects.create(
            name=name,
            trigger_kind=trigger_kind,
            sequence=normalize_sequence([{"subject": "Nice work", "message": "{{milestone}} classes!"}]),
            target_audience={"target_type": "all"},
            is_active=True,
            created_by=self.owner,
        )

    def test_check_in_updates_membership_and_rewards_milestone(self) -> None:
        now = timezone.now()

        result = check_in(self.booking, now=now)

        self.assertEqual((result.milestone, result.reward), (50, "Sweat towel"))
        self.booking.refresh_from_db()
        self.assertTrue(self.booking.checked_in)
        self.assertEqual(self.booking.checked_in_at, now)
        self.membership.refresh_from_db()
        self.assertEqual(self.membership.classes_attended, 50)
        self.assertEqual(self.membership.last_class_date, now)
        self.assertEqual(self.membership.last_reward_milestone, 50)

    def test_check_in_fires_post_class_and_milestone_campaigns(self) -> None:
        post_class = self._campaign("Thanks", Campaign.TriggerKind.POST_CLASS)
        milestone = self._campaign("Milestone", Campaign.TriggerKind.MILESTONE_ACHIEVED)

        check_in(self.booking)

        post_record = DeliveryRecord.objects.get(campaign=post_class)
        self.assertEqual(post_record.trigger_context["event_title"], "Hot Sculpt")
        self.assertEqual(post_record.trigger_context["classes_attended"], 50)
        milestone_record = DeliveryRecord.objects.get(campaign=milestone)
        self.assertEqual(milestone_record.trigger_context["milestone"], 50)
        self.assertEqual(milestone_record.trigger_context["reward"], "Sweat towel")

    def test_milestone_is_awarded_once(self) -> None:
        self.membership.classes_attended = 50
        self.membership.last_reward_milestone = 50
        self.membership.save()

        result = check_in(self.booking)

        self.assertIsNone(result.milestone)

    def test_double_check_in_is_rejected(self) -> None:
        check_in(self.booking)

        with self.assertRaises(ValidationError):
            check_in(self.booking)

    def test_next_milestone_reward(self) -> None:
        self.assertIsNone(next_milestone_reward(Membership(classes_attended=49)))
        self.assertEqual(next_milestone_reward(Membership(classes_attended=100, last_reward_milestone=50)), (100, "Tote bag"))
