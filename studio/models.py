from django.conf import settings
from django.db import models
from django.utils import timezone


class Event(models.Model):
    title = models.CharField(max_length=255)
    starts_at = models.DateTimeField()
    time_label = models.CharField(max_length=32, blank=True)
    location = models.CharField(max_length=255, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("starts_at",)

    def __str__(self) -> str:
        return f"{self.title} ({self.starts_at:%Y-%m-%d %H:%M})"


class Booking(models.Model):
    class PaymentStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        COMPLETED = "completed", "Completed"
        FAILED = "failed", "Failed"
        REFUNDED = "refunded", "Refunded"

    class Source(models.TextChoices):
        DIRECT = "direct", "Direct"
        CLASSPASS = "classpass", "ClassPass"
        MEMBERSHIP = "membership", "Membership"
        REFERRAL = "referral", "Referral"

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="bookings")
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="bookings")
    payment_status = models.CharField(
        max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.PENDING
    )
    booking_source = models.CharField(max_length=16, choices=Source.choices, default=Source.DIRECT)
    checked_in = models.BooleanField(default=False)
    checked_in_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    def __str__(self) -> str:
        return f"{self.user} @ {self.event}"


class Membership(models.Model):
    class Tier(models.TextChoices):
        FEVER_STARTER = "fever-starter", "Fever starter"
        OUTBREAK = "outbreak", "Outbreak"
        EPIDEMIC = "epidemic", "Epidemic"
        DROP_IN = "drop-in", "Drop-in"

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        PENDING_CANCELLATION = "pending-cancellation", "Pending cancellation"
        PENDING_PAYMENT = "pending-payment", "Pending payment"
        CANCELLED = "cancelled", "Cancelled"
        EXPIRED = "expired", "Expired"
        PAUSED = "paused", "Paused"

    CURRENT_STATUSES = (Status.ACTIVE, Status.PENDING_CANCELLATION)

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="memberships")
    tier = models.CharField(max_length=32, choices=Tier.choices)
    status = models.CharField(max_length=32, choices=Status.choices, default=Status.PENDING_PAYMENT)
    started_at = models.DateTimeField(default=timezone.now)
    next_billing_date = models.DateTimeField(null=True, blank=True)
    cancellation_date = models.DateTimeField(null=True, blank=True)
    credits_remaining = models.PositiveIntegerField(default=0)
    credits_expire_at = models.DateTimeField(null=True, blank=True)
    last_class_date = models.DateTimeField(null=True, blank=True)
    classes_attended = models.PositiveIntegerField(default=0)
    last_reward_milestone = models.PositiveIntegerField(default=0)

    def __str__(self) -> str:
        return f"{self.user} - {self.tier} ({self.status})"


class MailingList(models.Model):
    name = models.CharField(max_length=255, unique=True)
    members = models.ManyToManyField(settings.AUTH_USER_MODEL, blank=True, related_name="mailing_lists")
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return self.name
