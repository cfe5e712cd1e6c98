import uuid

import django.core.serializers.json
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Campaign",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("name", models.CharField(max_length=255, unique=True)),
                ("description", models.TextField(blank=True)),
                (
                    "trigger_kind",
                    models.CharField(
                        choices=[
                            ("new_registration", "New registration"),
                            ("class_reminder", "Class reminder"),
                            ("inactive_user", "Inactive user"),
                            ("credit_expiring", "Credit expiring"),
                            ("milestone_achieved", "Milestone achieved"),
                            ("membership_expiring", "Membership expiring"),
                            ("post_class", "Post class"),
                            ("abandoned_booking", "Abandoned booking"),
                            ("classpass_first_visit", "ClassPass first visit"),
                            ("classpass_second_visit", "ClassPass second visit"),
                            ("classpass_hot_lead", "ClassPass hot lead"),
                        ],
                        max_length=32,
                    ),
                ),
                ("trigger_config", models.JSONField(blank=True, default=dict)),
                ("sequence", models.JSONField(blank=True, default=list)),
                ("target_audience", models.JSONField(blank=True, default=dict)),
                ("is_active", models.BooleanField(default=False)),
                ("total_triggered", models.PositiveIntegerField(default=0)),
                ("total_sent", models.PositiveIntegerField(default=0)),
                ("total_failed", models.PositiveIntegerField(default=0)),
                ("total_opened", models.PositiveIntegerField(default=0)),
                ("total_clicked", models.PositiveIntegerField(default=0)),
                ("total_sms_sent", models.PositiveIntegerField(default=0)),
                ("total_sms_failed", models.PositiveIntegerField(default=0)),
                ("last_triggered_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="created_campaigns",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ("-created_at",),
                "indexes": [
                    models.Index(fields=["trigger_kind", "is_active"], name="campaign_kind_active_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="DeliveryRecord",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("recipient_email", models.EmailField(max_length=254)),
                ("step_number", models.PositiveIntegerField()),
                ("enrollment_id", models.UUIDField(default=uuid.uuid4, editable=False)),
                (
                    "trigger_context",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                    ),
                ),
                ("scheduled_for", models.DateTimeField()),
                ("sent_at", models.DateTimeField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("scheduled", "Scheduled"),
                            ("sent", "Sent"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="scheduled",
                        max_length=16,
                    ),
                ),
                ("error", models.TextField(blank=True)),
                (
                    "sms_status",
                    models.CharField(
                        choices=[
                            ("not_sent", "Not sent"),
                            ("sent", "Sent"),
                            ("failed", "Failed"),
                            ("skipped", "Skipped"),
                        ],
                        default="not_sent",
                        max_length=16,
                    ),
                ),
                ("sms_error", models.TextField(blank=True)),
                ("sms_sent_at", models.DateTimeField(blank=True, null=True)),
                ("sms_provider_id", models.CharField(blank=True, max_length=64)),
                (
                    "tracking_token",
                    models.CharField(blank=True, editable=False, max_length=64, null=True, unique=True),
                ),
                ("opened", models.BooleanField(default=False)),
                ("opened_at", models.DateTimeField(blank=True, null=True)),
                ("open_count", models.PositiveIntegerField(default=0)),
                ("clicked", models.BooleanField(default=False)),
                ("clicked_at", models.DateTimeField(blank=True, null=True)),
                ("click_count", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "campaign",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="deliveries",
                        to="campaigns.campaign",
                    ),
                ),
                (
                    "recipient",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="campaign_deliveries",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(
                        fields=["campaign", "recipient", "step_number"],
                        name="delivery_enrollment_idx",
                    ),
                    models.Index(fields=["scheduled_for", "status"], name="delivery_due_idx"),
                    models.Index(fields=["scheduled_for", "sms_status"], name="delivery_sms_due_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status__in", ["scheduled", "sent"])),
                        fields=("campaign", "recipient", "step_number"),
                        name="unique_active_delivery_step",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="EngagementEvent",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        choices=[("open", "Open"), ("click", "Click")],
                        max_length=16,
                    ),
                ),
                ("url", models.TextField(blank=True)),
                ("ip_address_truncated", models.CharField(blank=True, max_length=64)),
                ("ip_hash", models.CharField(blank=True, max_length=128)),
                ("user_agent", models.TextField(blank=True)),
                ("device_type", models.CharField(blank=True, max_length=16)),
                ("email_client_hint", models.CharField(blank=True, max_length=32)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "delivery",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="events",
                        to="campaigns.deliveryrecord",
                    ),
                ),
            ],
            options={
                "ordering": ("-created_at",),
            },
        ),
    ]
