from django.contrib import admin, messages
from django.core.exceptions import ValidationError

from campaigns import services
from campaigns.models import Campaign, DeliveryRecord, EngagementEvent, SmsDailyUsage


@admin.register(Campaign)
class CampaignAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "trigger_kind",
        "is_active",
        "total_triggered",
        "total_sent",
        "total_failed",
        "total_opened",
        "total_clicked",
        "last_triggered_at",
    )
    list_filter = ("trigger_kind", "is_active")
    search_fields = ("name", "description")
    readonly_fields = (
        "total_triggered",
        "total_sent",
        "total_failed",
        "total_opened",
        "total_clicked",
        "total_sms_sent",
        "total_sms_failed",
        "last_triggered_at",
        "created_at",
        "updated_at",
    )

    def save_model(self, request, obj, form, change) -> None:
        if not change and obj.created_by_id is None:
            obj.created_by = request.user
        obj.full_clean()
        super().save_model(request, obj, form, change)


@admin.register(DeliveryRecord)
class DeliveryRecordAdmin(admin.ModelAdmin):
    list_display = (
        "campaign",
        "recipient_email",
        "step_number",
        "scheduled_for",
        "status",
        "sms_status",
        "sent_at",
        "opened",
        "clicked",
    )
    list_filter = ("status", "sms_status", "opened", "clicked")
    search_fields = ("campaign__name", "recipient_email")
    actions = ("cancel_selected",)

    @admin.action(description="Cancel selected scheduled deliveries")
    def cancel_selected(self, request, queryset) -> None:
        cancelled = 0
        for record in queryset.filter(status=DeliveryRecord.Status.SCHEDULED):
            try:
                services.cancel_delivery(record, actor=request.user)
            except ValidationError:
                continue
            cancelled += 1
        self.message_user(request, f"Cancelled {cancelled} delivery record(s).", messages.SUCCESS)


@admin.register(EngagementEvent)
class EngagementEventAdmin(admin.ModelAdmin):
    list_display = ("event_type", "delivery", "url", "device_type", "email_client_hint", "created_at")
    list_filter = ("event_type", "created_at")
    search_fields = ("delivery__recipient_email", "delivery__campaign__name", "url")


@admin.register(SmsDailyUsage)
class SmsDailyUsageAdmin(admin.ModelAdmin):
    list_display = ("day", "sent")
    readonly_fields = ("day", "sent")
