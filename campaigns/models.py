import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.db.models import Q
from django.utils import timezone

from campaigns.sequence import Step, normalize_sequence


class Campaign(models.Model):
    class TriggerKind(models.TextChoices):
        NEW_REGISTRATION = "new_registration", "New registration"
        CLASS_REMINDER = "class_reminder", "Class reminder"
        INACTIVE_USER = "inactive_user", "Inactive user"
        CREDIT_EXPIRING = "credit_expiring", "Credit expiring"
        MILESTONE_ACHIEVED = "milestone_achieved", "Milestone achieved"
        MEMBERSHIP_EXPIRING = "membership_expiring", "Membership expiring"
        POST_CLASS = "post_class", "Post class"
        ABANDONED_BOOKING = "abandoned_booking", "Abandoned booking"
        CLASSPASS_FIRST_VISIT = "classpass_first_visit", "ClassPass first visit"
        CLASSPASS_SECOND_VISIT = "classpass_second_visit", "ClassPass second visit"
        CLASSPASS_HOT_LEAD = "classpass_hot_lead", "ClassPass hot lead"

    name = models.CharField(max_length=255, unique=True)
    description = models.TextField(blank=True)
    trigger_kind = models.CharField(max_length=32, choices=TriggerKind.choices)
    trigger_config = models.JSONField(default=dict, blank=True)
    sequence = models.JSONField(default=list, blank=True)
    target_audience = models.JSONField(default=dict, blank=True)
    is_active = models.BooleanField(default=False)
    total_triggered = models.PositiveIntegerField(default=0)
    total_sent = models.PositiveIntegerField(default=0)
    total_failed = models.PositiveIntegerField(default=0)
    total_opened = models.PositiveIntegerField(default=0)
    total_clicked = models.PositiveIntegerField(default=0)
    total_sms_sent = models.PositiveIntegerField(default=0)
    total_sms_failed = models.PositiveIntegerField(default=0)
    last_triggered_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="created_campaigns",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at",)
        indexes = [models.Index(fields=["trigger_kind", "is_active"], name="campaign_kind_active_idx")]

    def __str__(self) -> str:
        return self.name

    @property
    def steps(self) -> list[Step]:
        return [Step.from_dict(raw) for raw in self.sequence or []]

    def get_step(self, step_number: int) -> Step | None:
        for step in self.steps:
            if step.step_number == step_number:
                return step
        return None

    def clean(self) -> None:
        self.sequence = normalize_sequence(self.sequence)
        if not isinstance(self.trigger_config, dict):
            raise ValidationError({"trigger_config": "Trigger configuration must be an object."})
        if not isinstance(self.target_audience, dict):
            raise ValidationError({"target_audience": "Target audience must be an object."})


class DeliveryRecord(models.Model):
    class Status(models.TextChoices):
        SCHEDULED = "scheduled", "Scheduled"
        SENT = "sent", "Sent"
        FAILED = "failed", "Failed"
        CANCELLED = "cancelled", "Cancelled"

    class SmsStatus(models.TextChoices):
        NOT_SENT = "not_sent", "Not sent"
        SENT = "sent", "Sent"
        FAILED = "failed", "Failed"
        SKIPPED = "skipped", "Skipped"

    ACTIVE_STATUSES = (Status.SCHEDULED, Status.SENT)

    campaign = models.ForeignKey(Campaign, on_delete=models.CASCADE, related_name="deliveries")
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="campaign_deliveries",
    )
    recipient_email = models.EmailField()
    step_number = models.PositiveIntegerField()
    enrollment_id = models.UUIDField(default=uuid.uuid4, editable=False)
    trigger_context = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)
    scheduled_for = models.DateTimeField()
    sent_at = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.SCHEDULED)
    error = models.TextField(blank=True)
    sms_status = models.CharField(max_length=16, choices=SmsStatus.choices, default=SmsStatus.NOT_SENT)
    sms_error = models.TextField(blank=True)
    sms_sent_at = models.DateTimeField(null=True, blank=True)
    sms_provider_id = models.CharField(max_length=64, blank=True)
    tracking_token = models.CharField(max_length=64, unique=True, null=True, blank=True, editable=False)
    opened = models.BooleanField(default=False)
    opened_at = models.DateTimeField(null=True, blank=True)
    open_count = models.PositiveIntegerField(default=0)
    clicked = models.BooleanField(default=False)
    clicked_at = models.DateTimeField(null=True, blank=True)
    click_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [
            models.Index(fields=["campaign", "recipient", "step_number"], name="delivery_enrollment_idx"),
            models.Index(fields=["scheduled_for", "status"], name="delivery_due_idx"),
            models.Index(fields=["scheduled_for", "sms_status"], name="delivery_sms_due_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["campaign", "recipient", "step_number"],
                condition=Q(status__in=["scheduled", "sent"]),
                name="unique_active_delivery_step",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.campaign} -> {self.recipient_email} (step {self.step_number})"

    def clean(self) -> None:
        if self.status == self.Status.SENT and self.sent_at is None:
            raise ValidationError("sent_at is required when status is SENT.")

    def ensure_tracking_token(self) -> str:
        if not self.tracking_token:
            self.tracking_token = uuid.uuid4().hex
            DeliveryRecord.objects.filter(pk=self.pk).update(tracking_token=self.tracking_token)
        return self.tracking_token


class EngagementEvent(models.Model):
    class EventType(models.TextChoices):
        OPEN = "open", "Open"
        CLICK = "click", "Click"

    delivery = models.ForeignKey(DeliveryRecord, on_delete=models.CASCADE, related_name="events")
    event_type = models.CharField(max_length=16, choices=EventType.choices)
    url = models.TextField(blank=True)
    ip_address_truncated = models.CharField(max_length=64, blank=True)
    ip_hash = models.CharField(max_length=128, blank=True)
    user_agent = models.TextField(blank=True)
    device_type = models.CharField(max_length=16, blank=True)
    email_client_hint = models.CharField(max_length=32, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ("-created_at",)

    def __str__(self) -> str:
        return f"{self.event_type} - {self.delivery}"


class SmsDailyUsage(models.Model):
    """Successful SMS sends per local calendar day, checked against SMS_DAILY_LIMIT."""

    day = models.DateField(unique=True)
    sent = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ("-day",)
        verbose_name_plural = "SMS daily usage"

    def __str__(self) -> str:
        return f"{self.day}: {self.sent} SMS"
