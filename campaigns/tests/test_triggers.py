from datetime import timedelta

from django.test import TestCase
from django.utils import timezone

from accounts.models import User
from campaigns import triggers
from campaigns.models import Campaign, DeliveryRecord
from campaigns.tests.helpers import make_admin, make_campaign, make_user
from studio.models import Booking, Event, MailingList, Membership

TriggerKind = Campaign.TriggerKind


def _enrolled(campaign: Campaign) -> set[str]:
    return set(
        DeliveryRecord.objects.filter(campaign=campaign).values_list("recipient__username", flat=True)
    )


def _context(campaign: Campaign, username: str) -> dict:
    return DeliveryRecord.objects.filter(campaign=campaign, recipient__username=username).first().trigger_context


class NewRegistrationTests(TestCase):
    def setUp(self) -> None:
        self.owner = make_admin()

    def test_new_user_is_enrolled(self) -> None:
        campaign = make_campaign(self.owner, name="Welcome", trigger_kind=TriggerKind.NEW_REGISTRATION)

        make_user("ana", first_name="Ana", last_name="Diaz")

        self.assertEqual(_enrolled(campaign), {"ana"})
        self.assertEqual(_context(campaign, "ana")["user_name"], "Ana Diaz")
        self.assertIn("registration_date", _context(campaign, "ana"))

    def test_inactive_campaign_is_ignored(self) -> None:
        campaign = make_campaign(
            self.owner, name="Welcome", trigger_kind=TriggerKind.NEW_REGISTRATION, is_active=False
        )

        make_user("ana")

        self.assertEqual(_enrolled(campaign), set())

    def test_user_without_email_is_skipped(self) -> None:
        campaign = make_campaign(self.owner, name="Welcome", trigger_kind=TriggerKind.NEW_REGISTRATION)

        make_user("ana", email="")

        self.assertEqual(_enrolled(campaign), set())


class ClassReminderTests(TestCase):
    def setUp(self) -> None:
        self.owner = make_admin()
        self.now = timezone.now()
        self.campaign = make_campaign(self.owner, trigger_config={"days_before_event": 1})

    def _book(self, username: str, starts_at, **extra) -> Booking:
        event = Event.objects.create(title="Hot Sculpt", starts_at=starts_at, time_label="6:00 PM", location="Studio A")
        extra.setdefault("payment_status", Booking.PaymentStatus.COMPLETED)
        return Booking.objects.create(user=make_user(username), event=event, **extra)

    def test_bookings_inside_the_window_are_reminded(self) -> None:
        self._book("ana", self.now + timedelta(days=1, minutes=10))
        self._book("ben", self.now + timedelta(days=1, minutes=30))
        self._book("cai", self.now + timedelta(days=1), payment_status=Booking.PaymentStatus.PENDING)
        self._book("dee", self.now + timedelta(days=1), checked_in=True)

        enrolled = triggers.scan_class_reminders(now=self.now)

        self.assertEqual(enrolled, 1)
        self.assertEqual(_enrolled(self.campaign), {"ana"})
        context = _context(self.campaign, "ana")
        self.assertEqual(context["event_title"], "Hot Sculpt")
        self.assertEqual(context["event_time"], "6:00 PM")
        self.assertEqual(context["event_location"], "Studio A")

    def test_hours_before_event(self) -> None:
        Campaign.objects.filter(pk=self.campaign.pk).update(
            trigger_config={"days_before_event": 0, "hours_before_event": 2}
        )
        self._book("ana", self.now + timedelta(hours=2))

        triggers.scan_class_reminders(now=self.now)

        self.assertEqual(_enrolled(self.campaign), {"ana"})

    def test_rescanning_does_not_duplicate(self) -> None:
        self._book("ana", self.now + timedelta(days=1))

        triggers.scan_class_reminders(now=self.now)
        triggers.scan_class_reminders(now=self.now + timedelta(minutes=5))

        self.assertEqual(DeliveryRecord.objects.filter(campaign=self.campaign).count(), 1)

    def test_unusable_config_skips_campaign(self) -> None:
        Campaign.objects.filter(pk=self.campaign.pk).update(trigger_config={"days_before_event": "soon"})
        healthy = make_campaign(self.owner, name="Healthy")
        self._book("ana", self.now + timedelta(days=1))

        enrolled = triggers.scan_class_reminders(now=self.now)

        self.assertEqual(enrolled, 1)
        self.assertEqual(_enrolled(self.campaign), set())
        self.assertEqual(_enrolled(healthy), {"ana"})


class MembershipScanTests(TestCase):
    def setUp(self) -> None:
        self.owner = make_admin()
        self.now = timezone.now()

    def _member(self, username: str, **membership) -> User:
        user = make_user(username)
        membership.setdefault("tier", Membership.Tier.OUTBREAK)
        membership.setdefault("status", Membership.Status.ACTIVE)
        Membership.objects.create(user=user, **membership)
        return user

    def test_inactive_users(self) -> None:
        campaign = make_campaign(self.owner, trigger_kind=TriggerKind.INACTIVE_USER, trigger_config={"inactive_days": 30})
        self._member("ana", last_class_date=self.now - timedelta(days=40), credits_remaining=4)
        self._member("ben", last_class_date=self.now - timedelta(days=10))
        self._member("cai", last_class_date=self.now - timedelta(days=40), status=Membership.Status.CANCELLED)

        triggers.scan_inactive_users(now=self.now)

        self.assertEqual(_enrolled(campaign), {"ana"})
        context = _context(campaign, "ana")
        self.assertEqual(context["inactive_days"], 30)
        self.assertEqual(context["credits_remaining"], 4)

    def test_credit_expiring(self) -> None:
        campaign = make_campaign(self.owner, trigger_kind=TriggerKind.CREDIT_EXPIRING)
        self._member("ana", credits_remaining=3, credits_expire_at=self.now + timedelta(days=3))
        self._member("ben", credits_remaining=0, credits_expire_at=self.now + timedelta(days=3))
        self._member("cai", credits_remaining=3, credits_expire_at=self.now + timedelta(days=10))

        triggers.scan_credit_expiring(now=self.now)

        self.assertEqual(_enrolled(campaign), {"ana"})
        self.assertEqual(_context(campaign, "ana")["credits_remaining"], 3)

    def test_membership_expiring(self) -> None:
        campaign = make_campaign(
            self.owner, trigger_kind=TriggerKind.MEMBERSHIP_EXPIRING, trigger_config={"days_before_expiry": 7}
        )
        self._member(
            "ana",
            status=Membership.Status.PENDING_CANCELLATION,
            cancellation_date=self.now + timedelta(days=5),
        )
        self._member("ben", next_billing_date=self.now + timedelta(days=3))
        self._member("cai", next_billing_date=self.now + timedelta(days=20))

        triggers.scan_membership_expiring(now=self.now)

        self.assertEqual(_enrolled(campaign), {"ana", "ben"})
        self.assertEqual(_context(campaign, "ben")["membership_tier"], "Outbreak")

    def test_membership_audience(self) -> None:
        campaign = make_campaign(
            self.owner,
            trigger_kind=TriggerKind.INACTIVE_USER,
            target_audience={"target_type": "memberships", "membership_tiers": ["epidemic"]},
        )
        self._member("ana", tier=Membership.Tier.EPIDEMIC, last_class_date=self.now - timedelta(days=60))
        self._member("ben", tier=Membership.Tier.OUTBREAK, last_class_date=self.now - timedelta(days=60))

        triggers.scan_inactive_users(now=self.now)

        self.assertEqual(_enrolled(campaign), {"ana"})

    def test_list_audience(self) -> None:
        vip = MailingList.objects.create(name="VIP")
        campaign = make_campaign(
            self.owner,
            trigger_kind=TriggerKind.INACTIVE_USER,
            target_audience={"target_type": "lists", "lists": [vip.pk]},
        )
        ana = self._member("ana", last_class_date=self.now - timedelta(days=60))
        self._member("ben", last_class_date=self.now - timedelta(days=60))
        vip.members.add(ana)

        triggers.scan_inactive_users(now=self.now)

        self.assertEqual(_enrolled(campaign), {"ana"})


class AbandonedBookingTests(TestCase):
    def setUp(self) -> None:
        self.owner = make_admin()
        self.now = timezone.now()
        self.campaign = make_campaign(self.owner, trigger_kind=TriggerKind.ABANDONED_BOOKING)
        self.event = Event.objects.create(title="Barre", starts_at=self.now + timedelta(days=2))

    def test_stale_pending_bookings(self) -> None:
        ana, ben, cai = make_user("ana"), make_user("ben"), make_user("cai")
        Booking.objects.create(user=ana, event=self.event, created_at=self.now - timedelta(hours=2))
        Booking.objects.create(user=ben, event=self.event, created_at=self.now - timedelta(minutes=30))
        Booking.objects.create(user=cai, event=self.event, created_at=self.now - timedelta(hours=2))
        Booking.objects.create(
            user=cai,
            event=self.event,
            payment_status=Booking.PaymentStatus.COMPLETED,
            created_at=self.now - timedelta(hours=1),
        )

        triggers.scan_abandoned_bookings(now=self.now)

        self.assertEqual(_enrolled(self.campaign), {"ana"})
        self.assertEqual(_context(self.campaign, "ana")["event_title"], "Barre")


class ClassPassFunnelTests(TestCase):
    def setUp(self) -> None:
        self.owner = make_admin()
        self.first = make_campaign(self.owner, name="First", trigger_kind=TriggerKind.CLASSPASS_FIRST_VISIT)
        self.second = make_campaign(self.owner, name="Second", trigger_kind=TriggerKind.CLASSPASS_SECOND_VISIT)
        self.hot = make_campaign(self.owner, name="Hot", trigger_kind=TriggerKind.CLASSPASS_HOT_LEAD)
        self.member = make_user("ana")

    def _classpass_booking(self) -> Booking:
        event = Event.objects.create(title="Hot Sculpt", starts_at=timezone.now() + timedelta(days=1))
        return Booking.objects.create(user=self.member, event=event, booking_source=Booking.Source.CLASSPASS)

    def test_stage(self) -> None:
        self.assertEqual(triggers.classpass_stage(1, False), TriggerKind.CLASSPASS_FIRST_VISIT)
        self.assertEqual(triggers.classpass_stage(2, False), TriggerKind.CLASSPASS_SECOND_VISIT)
        self.assertEqual(triggers.classpass_stage(4, False), TriggerKind.CLASSPASS_HOT_LEAD)
        self.assertIsNone(triggers.classpass_stage(4, True))
        self.assertIsNone(triggers.classpass_stage(0, False))

    def test_bookings_walk_the_funnel(self) -> None:
        first_booking = self._classpass_booking()

        self.member.refresh_from_db()
        self.assertEqual(self.member.acquisition_source, User.AcquisitionSource.CLASSPASS)
        self.assertEqual(self.member.first_classpass_booking_at, first_booking.created_at)
        self.assertEqual(_enrolled(self.first), {"ana"})

        self._classpass_booking()
        self.assertEqual(_enrolled(self.second), {"ana"})
        self.assertEqual(_context(self.second, "ana")["booking_count"], 2)

        self._classpass_booking()
        self.assertEqual(_enrolled(self.hot), {"ana"})

    def test_converted_member_is_not_a_hot_lead(self) -> None:
        self.member.converted_to_member = True
        self.member.save(update_fields=["converted_to_member"])

        for _ in range(3):
            self._classpass_booking()

        self.assertEqual(_enrolled(self.hot), set())

    def test_direct_bookings_do_not_enter_the_funnel(self) -> None:
        event = Event.objects.create(title="Hot Sculpt", starts_at=timezone.now() + timedelta(days=1))

        Booking.objects.create(user=self.member, event=event)

        self.assertEqual(_enrolled(self.first), set())
