"""Administrative operations on campaigns and their scheduled deliveries."""

from __future__ import annotations

import logging
from typing import Any

from django.core.exceptions import ValidationError
from django.core.paginator import EmptyPage, Paginator
from django.db import IntegrityError, transaction

from auditing.models import AuditLog
from campaigns.models import Campaign, DeliveryRecord
from studio.models import Membership

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name",
    "description",
    "trigger_kind",
    "trigger_config",
    "sequence",
    "target_audience",
    "is_active",
)
TARGET_TYPES = ("all", "memberships", "lists")
DEFAULT_AUDIENCE = {"include_all": True, "membership_tiers": []}
RECENT_DELIVERIES = 10


def normalize_audience(raw: Any) -> dict[str, Any]:
    if raw in (None, ""):
        return dict(DEFAULT_AUDIENCE)
    if not isinstance(raw, dict):
        raise ValidationError({"target_audience": ["Target audience must be an object."]})

    errors = []
    audience: dict[str, Any] = {}
    target_type = raw.get("target_type")
    if target_type:
        if target_type not in TARGET_TYPES:
            errors.append(f"Unknown target_type {target_type!r}.")
        audience["target_type"] = target_type
    audience["include_all"] = bool(raw.get("include_all", False))

    tiers = raw.get("membership_tiers") or []
    valid_tiers = set(Membership.Tier.values) | {"all"}
    if not isinstance(tiers, list) or any(tier not in valid_tiers for tier in tiers):
        errors.append("membership_tiers must be a list of known tiers or 'all'.")
    audience["membership_tiers"] = list(tiers) if isinstance(tiers, list) else []

    lists = raw.get("lists") or []
    if not isinstance(lists, list):
        errors.append("lists must be a list of mailing list ids.")
        lists = []
    audience["lists"] = lists

    if errors:
        raise ValidationError({"target_audience": errors})
    return audience


def _save_campaign(campaign: Campaign) -> Campaign:
    campaign.full_clean(validate_unique=False)
    try:
        with transaction.atomic():
            campaign.save()
    except IntegrityError as exc:
        raise ValidationError({"name": ["A campaign with this name already exists."]}) from exc
    return campaign


def create_campaign(data: dict[str, Any], *, created_by) -> Campaign:
    campaign = Campaign(
        name=str(data.get("name") or "").strip(),
        description=str(data.get("description") or "").strip(),
        trigger_kind=data.get("trigger_kind") or "",
        trigger_config=data.get("trigger_config") or {},
        sequence=data.get("sequence") or [],
        target_audience=normalize_audience(data.get("target_audience")),
        is_active=bool(data.get("is_active", False)),
        created_by=created_by,
    )
    _save_campaign(campaign)
    AuditLog.record("campaign_created", actor=created_by, obj=campaign, name=campaign.name)
    logger.info("Campaign %s (%s) created", campaign.pk, campaign.name)
    return campaign


def update_campaign(campaign: Campaign, data: dict[str, Any], *, actor=None) -> Campaign:
    """Apply a partial update. Stat counters are never writable here."""
    changed = [field for field in EDITABLE_FIELDS if field in data]
    for field in changed:
        value = data[field]
        if field in ("name", "description"):
            value = str(value or "").strip()
        elif field == "target_audience":
            value = normalize_audience(value)
        elif field == "trigger_config":
            value = value or {}
        elif field == "is_active":
            value = bool(value)
        setattr(campaign, field, value)
    _save_campaign(campaign)
    AuditLog.record("campaign_updated", actor=actor, obj=campaign, fields=changed)
    return campaign


def toggle_campaign(campaign: Campaign, *, actor=None) -> Campaign:
    campaign.is_active = not campaign.is_active
    campaign.save(update_fields=["is_active", "updated_at"])
    AuditLog.record("campaign_toggled", actor=actor, obj=campaign, is_active=campaign.is_active)
    return campaign


def delete_campaign(campaign: Campaign, *, actor=None) -> int:
    """Delete a campaign together with all of its delivery records."""
    campaign_id, name = campaign.pk, campaign.name
    with transaction.atomic():
        deliveries, _ = DeliveryRecord.objects.filter(campaign=campaign).delete()
        campaign.delete()
    AuditLog.record(
        "campaign_deleted",
        actor=actor,
        campaign_id=campaign_id,
        name=name,
        deliveries_deleted=deliveries,
    )
    logger.info("Campaign %s deleted with %s delivery record(s)", campaign_id, deliveries)
    return deliveries


def cancel_delivery(record: DeliveryRecord, *, actor=None) -> DeliveryRecord:
    with transaction.atomic():
        locked = DeliveryRecord.objects.select_for_update().filter(pk=record.pk).first()
        if locked is None or locked.status != DeliveryRecord.Status.SCHEDULED:
            raise ValidationError("Can only cancel scheduled emails.")
        locked.status = DeliveryRecord.Status.CANCELLED
        update_fields = ["status"]
        if locked.sms_status == DeliveryRecord.SmsStatus.NOT_SENT:
            locked.sms_status = DeliveryRecord.SmsStatus.SKIPPED
            locked.sms_error = "Cancelled"
            update_fields += ["sms_status", "sms_error"]
        locked.save(update_fields=update_fields)
    AuditLog.record(
        "campaign_delivery_cancelled",
        actor=actor,
        obj=locked,
        campaign_id=locked.campaign_id,
        recipient_id=locked.recipient_id,
        step=locked.step_number,
    )
    return locked


def scheduled_deliveries(campaign: Campaign, *, page: int = 1, limit: int = 20) -> dict[str, Any]:
    queryset = (
        DeliveryRecord.objects.select_related("recipient")
        .filter(campaign=campaign, status=DeliveryRecord.Status.SCHEDULED)
        .order_by("scheduled_for", "pk")
    )
    paginator = Paginator(queryset, limit)
    try:
        records = list(paginator.page(page).object_list)
    except EmptyPage:
        records = []
    return {
        "records": records,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": paginator.count,
            "pages": paginator.num_pages if paginator.count else 0,
        },
    }


def campaign_stats(campaign: Campaign) -> dict[str, Any]:
    deliveries = DeliveryRecord.objects.filter(campaign=campaign)
    Status = DeliveryRecord.Status
    return {
        "total_triggered": campaign.total_triggered,
        "total_sent": campaign.total_sent,
        "total_failed": campaign.total_failed,
        "total_opened": campaign.total_opened,
        "total_clicked": campaign.total_clicked,
        "total_sms_sent": campaign.total_sms_sent,
        "total_sms_failed": campaign.total_sms_failed,
        "scheduled": deliveries.filter(status=Status.SCHEDULED).count(),
        "sent": deliveries.filter(status=Status.SENT).count(),
        "failed": deliveries.filter(status=Status.FAILED).count(),
        "last_triggered_at": campaign.last_triggered_at,
        "recent": list(
            deliveries.select_related("recipient").order_by("-sent_at", "-created_at")[:RECENT_DELIVERIES]
        ),
    }
