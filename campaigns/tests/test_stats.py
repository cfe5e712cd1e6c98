from unittest import mock

from django.test import TestCase, override_settings
from django.utils import timezone

from campaigns import tasks
from campaigns.dispatch import dispatch_due_emails
from campaigns.engagement import record_open
from campaigns.models import Campaign, DeliveryRecord
from campaigns.scheduling import schedule_for_user
from campaigns.stats import recompute_stats, reconcile_stats
from campaigns.tests.helpers import FakeEmailSender, make_admin, make_campaign, make_user, step


class CampaignStatsTests(TestCase):
    def setUp(self) -> None:
        self.owner = make_admin()
        self.now = timezone.now()
        self.campaign = make_campaign(self.owner, sequence=[step(), step(subject="Later", delay_days=3)])
        for name in ("ana", "ben"):
            member = make_user(name)
            schedule_for_user(self.campaign, member, member.email, now=self.now)

    def test_counters_match_records_after_activity(self) -> None:
        dispatch_due_emails(FakeEmailSender(), now=self.now)
        token = DeliveryRecord.objects.filter(campaign=self.campaign, status="sent").first().tracking_token
        record_open(token, now=self.now)
        record_open(token, now=self.now)

        self.campaign.refresh_from_db()
        recomputed = recompute_stats(self.campaign)

        self.assertEqual(recomputed["total_triggered"], 2)
        self.assertEqual(recomputed["total_sent"], 2)
        self.assertEqual(recomputed["total_opened"], 1)
        self.assertEqual(recomputed, {field: getattr(self.campaign, field) for field in recomputed})

    def test_reconcile_repairs_drift(self) -> None:
        Campaign.objects.filter(pk=self.campaign.pk).update(total_sent=99, total_triggered=5)
        self.campaign.refresh_from_db()

        drift = reconcile_stats(self.campaign)

        self.assertEqual(drift["total_sent"], (99, 0))
        self.assertEqual(drift["total_triggered"], (5, 2))
        self.campaign.refresh_from_db()
        self.assertEqual((self.campaign.total_sent, self.campaign.total_triggered), (0, 2))
        self.assertEqual(reconcile_stats(self.campaign), {})

    def test_reconcile_recounts_under_a_row_lock(self) -> None:
        stale = Campaign.objects.get(pk=self.campaign.pk)
        Campaign.objects.filter(pk=self.campaign.pk).update(total_sent=99)

        with mock.patch.object(
            Campaign.objects, "select_for_update", wraps=Campaign.objects.select_for_update
        ) as select_for_update:
            drift = reconcile_stats(stale)

        select_for_update.assert_called_once_with()
        self.assertEqual(drift, {"total_sent": (99, 0)})
        self.assertEqual(stale.total_sent, 0)

    def test_reconcile_task_counts_drifted_campaigns(self) -> None:
        make_campaign(self.owner, name="Untouched")
        Campaign.objects.filter(pk=self.campaign.pk).update(total_failed=7)

        self.assertEqual(tasks.reconcile_campaign_stats_task(), 1)


class DispatchTaskTests(TestCase):
    def setUp(self) -> None:
        self.owner = make_admin()
        self.campaign = make_campaign(self.owner, sequence=[step(send_sms=True, sms_message="Hi {{firstName}}")])
        self.member = make_user("ana", phone="4085551234")
        schedule_for_user(self.campaign, self.member, self.member.email)

    def test_email_task_uses_configured_backend(self) -> None:
        self.assertEqual(tasks.dispatch_due_emails_task(), 1)
        self.assertEqual(DeliveryRecord.objects.get().status, DeliveryRecord.Status.SENT)

    @override_settings(SMS_ENABLED=False)
    def test_sms_task_is_a_noop_when_disabled(self) -> None:
        self.assertEqual(tasks.dispatch_due_sms_task(), 0)
        self.assertEqual(DeliveryRecord.objects.get().sms_status, DeliveryRecord.SmsStatus.NOT_SENT)

    @override_settings(
        SMS_ENABLED=True,
        TWILIO_ACCOUNT_SID="AC123",
        TWILIO_AUTH_TOKEN="secret",
        TWILIO_PHONE_NUMBER="+14085550000",
    )
    def test_sms_task_sends_through_twilio(self) -> None:
        with mock.patch("campaigns.sending.Client") as client_cls:
            client_cls.return_value.messages.create.return_value = mock.Mock(sid="SM42")

            self.assertEqual(tasks.dispatch_due_sms_task(), 1)

        client_cls.return_value.messages.create.assert_called_once_with(
            to="+14085551234", from_="+14085550000", body="Hi Ana"
        )
        self.assertEqual(DeliveryRecord.objects.get().sms_provider_id, "SM42")
