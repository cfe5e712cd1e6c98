from datetime import timedelta

from django.test import TestCase
from django.utils import timezone

from campaigns.dispatch import dispatch_due_emails
from campaigns.engagement import engagement_analytics, record_click, record_open
from campaigns.models import DeliveryRecord, EngagementEvent
from campaigns.scheduling import schedule_for_user
from campaigns.tests.helpers import FakeEmailSender, make_admin, make_campaign, make_user
from campaigns.tracking import ClientSignals, device_type_for, email_client_for, truncate_ip


class EngagementTests(TestCase):
    def setUp(self) -> None:
        self.owner = make_admin()
        self.now = timezone.now()
        self.campaign = make_campaign(self.owner)
        self.members = [make_user("ana"), make_user("ben")]
        for member in self.members:
            schedule_for_user(self.campaign, member, member.email, now=self.now)
        dispatch_due_emails(FakeEmailSender(), now=self.now)
        self.records = list(DeliveryRecord.objects.filter(campaign=self.campaign).order_by("recipient_email"))

    def test_first_open_counts_once(self) -> None:
        token = self.records[0].tracking_token

        self.assertTrue(record_open(token, now=self.now, signals=ClientSignals(device_type="mobile")))
        self.assertTrue(record_open(token, now=self.now + timedelta(hours=1)))

        record = DeliveryRecord.objects.get(pk=self.records[0].pk)
        self.assertTrue(record.opened)
        self.assertEqual(record.opened_at, self.now)
        self.assertEqual(record.open_count, 2)
        self.campaign.refresh_from_db()
        self.assertEqual(self.campaign.total_opened, 1)
        events = EngagementEvent.objects.filter(delivery=record, event_type=EngagementEvent.EventType.OPEN)
        self.assertEqual(events.count(), 2)
        self.assertTrue(events.filter(device_type="mobile").exists())

    def test_clicks_count_each_time_but_total_once(self) -> None:
        token = self.records[0].tracking_token

        record_click(token, "https://fever.example/book", now=self.now)
        record_click(token, "https://fever.example/pricing", now=self.now + timedelta(minutes=1))

        record = DeliveryRecord.objects.get(pk=self.records[0].pk)
        self.assertTrue(record.clicked)
        self.assertEqual(record.clicked_at, self.now)
        self.assertEqual(record.click_count, 2)
        self.campaign.refresh_from_db()
        self.assertEqual(self.campaign.total_clicked, 1)
        self.assertEqual(
            sorted(record.events.filter(event_type="click").values_list("url", flat=True)),
            ["https://fever.example/book", "https://fever.example/pricing"],
        )

    def test_unknown_token_changes_nothing(self) -> None:
        self.assertFalse(record_open("does-not-exist"))
        self.assertFalse(record_click(None, "https://fever.example"))

        self.assertFalse(EngagementEvent.objects.exists())
        self.campaign.refresh_from_db()
        self.assertEqual((self.campaign.total_opened, self.campaign.total_clicked), (0, 0))

    def test_analytics_rates_and_links(self) -> None:
        token = self.records[0].tracking_token
        record_open(token, now=self.now)
        record_click(token, "https://fever.example/book", now=self.now)
        record_click(token, "https://fever.example/book", now=self.now)
        record_click(token, "https://fever.example/pricing", now=self.now)

        analytics = engagement_analytics(self.campaign)

        self.assertEqual(analytics["total_sent"], 2)
        self.assertEqual(analytics["total_opened"], 1)
        self.assertEqual(analytics["total_clicked"], 1)
        self.assertEqual(analytics["open_rate"], 50.0)
        self.assertEqual(analytics["click_rate"], 50.0)
        self.assertEqual(analytics["click_to_open_rate"], 100.0)
        self.assertEqual(analytics["top_links"][0], {"url": "https://fever.example/book", "clicks": 2})
        self.assertEqual(len(analytics["recent_opens"]), 1)
        self.assertEqual(len(analytics["recent_clicks"]), 3)

    def test_analytics_without_sends(self) -> None:
        empty = make_campaign(self.owner, name="Quiet")

        analytics = engagement_analytics(empty)

        self.assertEqual(analytics["open_rate"], 0.0)
        self.assertEqual(analytics["click_to_open_rate"], 0.0)
        self.assertEqual(analytics["top_links"], [])


class ClientSignalTests(TestCase):
    def test_device_and_client_hints(self) -> None:
        self.assertEqual(device_type_for("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0)"), "mobile")
        self.assertEqual(device_type_for("Mozilla/5.0 (iPad; CPU OS 17_0)"), "tablet")
        self.assertEqual(device_type_for(""), "unknown")
        self.assertEqual(email_client_for("Mozilla/5.0 (via ggpht.com GoogleImageProxy)"), "Gmail")

    def test_ip_is_truncated(self) -> None:
        self.assertEqual(truncate_ip("203.0.113.77"), "203.0.113.0/24")
        self.assertEqual(truncate_ip("not-an-ip"), "")
