from __future__ import annotations

from typing import Any

from campaigns.models import Campaign, DeliveryRecord


def _person(user) -> dict[str, Any] | None:
    if user is None:
        return None
    return {"id": user.pk, "name": user.display_name, "email": user.email}


def serialize_campaign(campaign: Campaign) -> dict[str, Any]:
    return {
        "id": campaign.pk,
        "name": campaign.name,
        "description": campaign.description,
        "trigger_kind": campaign.trigger_kind,
        "trigger_config": campaign.trigger_config,
        "sequence": campaign.sequence,
        "target_audience": campaign.target_audience,
        "is_active": campaign.is_active,
        "stats": {
            "total_triggered": campaign.total_triggered,
            "total_sent": campaign.total_sent,
            "total_failed": campaign.total_failed,
            "total_opened": campaign.total_opened,
            "total_clicked": campaign.total_clicked,
            "total_sms_sent": campaign.total_sms_sent,
            "total_sms_failed": campaign.total_sms_failed,
        },
        "last_triggered_at": campaign.last_triggered_at,
        "created_by": _person(campaign.created_by),
        "created_at": campaign.created_at,
        "updated_at": campaign.updated_at,
    }


def serialize_delivery(record: DeliveryRecord) -> dict[str, Any]:
    return {
        "id": record.pk,
        "campaign_id": record.campaign_id,
        "recipient": _person(record.recipient),
        "recipient_email": record.recipient_email,
        "step_number": record.step_number,
        "enrollment_id": record.enrollment_id,
        "scheduled_for": record.scheduled_for,
        "sent_at": record.sent_at,
        "status": record.status,
        "error": record.error,
        "sms_status": record.sms_status,
        "sms_error": record.sms_error,
        "sms_sent_at": record.sms_sent_at,
        "opened": record.opened,
        "open_count": record.open_count,
        "clicked": record.clicked,
        "click_count": record.click_count,
    }
