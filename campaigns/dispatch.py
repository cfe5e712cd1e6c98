"""Time-based dispatch of scheduled delivery records.

Email and SMS run as separate loops over the same records: email walks
``status``, SMS walks ``sms_status``. Each record is claimed, sent and moved
to a terminal state inside its own transaction, so one record's failure never
holds up the rest of the batch. Failed sends are terminal and are not retried.
A send the provider accepted is always recorded as sent, even when writing
its outcome or audit entry goes wrong.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone
from django.utils.html import linebreaks, strip_tags

from auditing.models import AuditLog
from campaigns import quota
from campaigns.exceptions import DeliveryNotRecorded
from campaigns.models import Campaign, DeliveryRecord
from campaigns.sending import SendOutcome
from campaigns.templating import render, truncate_sms
from campaigns.tracking import add_tracking

logger = logging.getLogger(__name__)

Status = DeliveryRecord.Status
SmsStatus = DeliveryRecord.SmsStatus


@dataclass
class DispatchSummary:
    sent: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def processed(self) -> int:
        return self.sent + self.failed + self.skipped

    def count(self, result: str | None) -> None:
        if result == "sent":
            self.sent += 1
        elif result == "failed":
            self.failed += 1
        elif result == "skipped":
            self.skipped += 1


def build_render_context(record: DeliveryRecord) -> dict[str, Any]:
    context = dict(record.trigger_context or {})
    context["email"] = record.recipient_email
    recipient = record.recipient
    if recipient is not None:
        context["name"] = recipient.get_full_name() or context.get("user_name") or recipient.username
        context["phone"] = recipient.phone
    return context


def build_email_html(message: str) -> str:
    if strip_tags(message) != message:
        return message
    return linebreaks(message)


def _audit(action: str, record: DeliveryRecord, campaign: Campaign | None, **extra) -> None:
    AuditLog.record(
        action,
        actor=campaign.created_by if campaign is not None else None,
        obj=record,
        campaign_id=record.campaign_id,
        recipient_id=record.recipient_id,
        step=record.step_number,
        **extra,
    )


def _audit_safely(action: str, record: DeliveryRecord, campaign: Campaign | None, **extra) -> None:
    try:
        with transaction.atomic():
            _audit(action, record, campaign, **extra)
    except Exception:  # noqa: BLE001 - the delivery outcome stands without its audit entry
        logger.exception("Could not write %s audit entry for delivery %s", action, record.pk)


def _error_text(exc: Exception) -> str:
    if isinstance(exc, DeliveryNotRecorded):
        return exc.outcome.error
    return str(exc) or exc.__class__.__name__


def _fail_email(record: DeliveryRecord, campaign: Campaign | None, error: str) -> str:
    record.status = Status.FAILED
    record.error = error
    record.save(update_fields=["status", "error"])
    Campaign.objects.filter(pk=record.campaign_id).update(total_failed=F("total_failed") + 1)
    _audit_safely("campaign_email_failed", record, campaign, error=error)
    logger.warning(
        "Email for campaign %s, recipient %s, step %s failed: %s",
        record.campaign_id,
        record.recipient_id,
        record.step_number,
        error,
    )
    return "failed"


def _complete_email(record: DeliveryRecord, campaign: Campaign, now) -> str:
    record.status = Status.SENT
    record.sent_at = now
    record.error = ""
    record.save(update_fields=["status", "sent_at", "error"])
    Campaign.objects.filter(pk=record.campaign_id).update(total_sent=F("total_sent") + 1)
    _audit_safely("campaign_email_sent", record, campaign)
    logger.info(
        "Sent email for campaign %s to %s (step %s)",
        record.campaign_id,
        record.recipient_email,
        record.step_number,
    )
    return "sent"


def _send_safely(send, *args) -> SendOutcome:
    try:
        return send(*args)
    except Exception as exc:  # noqa: BLE001 - a misbehaving sender counts as a failed send
        return SendOutcome.failed(str(exc) or exc.__class__.__name__)


def dispatch_email(record_id: int, sender, *, now=None) -> str | None:
    """Send one due email. Returns "sent", "failed", or None if the record was not claimable.

    Raises ``DeliveryNotRecorded`` when the send went out but its outcome could
    not be saved; the caller settles the record from the exception.
    """
    now = now or timezone.now()
    with transaction.atomic():
        record = (
            DeliveryRecord.objects.select_for_update(skip_locked=True)
            .filter(pk=record_id, status=Status.SCHEDULED, scheduled_for__lte=now)
            .first()
        )
        if record is None:
            return None

        campaign = Campaign.objects.filter(pk=record.campaign_id).first()
        if campaign is None:
            return _fail_email(record, None, "Campaign not found")
        if record.recipient is None:
            return _fail_email(record, campaign, "Recipient not found")
        step = campaign.get_step(record.step_number)
        if step is None:
            return _fail_email(record, campaign, f"Sequence step {record.step_number} not found")

        context = build_render_context(record)
        subject = render(step.subject, context)
        html = add_tracking(build_email_html(render(step.message, context)), record.ensure_tracking_token())
        outcome = _send_safely(sender.send_email, record.recipient_email, subject, html)
        try:
            with transaction.atomic():
                if outcome.success:
                    return _complete_email(record, campaign, now)
                return _fail_email(record, campaign, outcome.error)
        except Exception as exc:
            raise DeliveryNotRecorded(record.pk, outcome) from exc


def _settle_email(record_id: int, exc: Exception, now) -> str | None:
    """Finish a record whose dispatch raised, unless it already left the scheduled state.

    A send the provider accepted is marked sent; anything else is marked failed.
    """
    campaign_id = DeliveryRecord.objects.filter(pk=record_id).values_list("campaign_id", flat=True).first()
    pending = DeliveryRecord.objects.filter(pk=record_id, status=Status.SCHEDULED)
    with transaction.atomic():
        if isinstance(exc, DeliveryNotRecorded) and exc.accepted:
            updated = pending.update(status=Status.SENT, sent_at=now, error="")
            counter, result = "total_sent", "sent"
        else:
            updated = pending.update(status=Status.FAILED, error=_error_text(exc))
            counter, result = "total_failed", "failed"
        if not updated:
            return None
        Campaign.objects.filter(pk=campaign_id).update(**{counter: F(counter) + 1})
    return result


def due_email_ids(now, limit: int | None = None) -> list[int]:
    queryset = (
        DeliveryRecord.objects.filter(status=Status.SCHEDULED, scheduled_for__lte=now)
        .order_by("scheduled_for", "pk")
        .values_list("pk", flat=True)
    )
    if limit:
        queryset = queryset[:limit]
    return list(queryset)


def dispatch_due_emails(sender, *, now=None, limit: int | None = None) -> DispatchSummary:
    now = now or timezone.now()
    summary = DispatchSummary()
    record_ids = due_email_ids(now, limit)
    logger.info("Found %s scheduled email(s) due for sending", len(record_ids))
    for record_id in record_ids:
        try:
            result = dispatch_email(record_id, sender, now=now)
        except Exception as exc:  # noqa: BLE001 - log and continue
            logger.exception("Unexpected error dispatching email delivery %s", record_id)
            result = _settle_email(record_id, exc, now)
        summary.count(result)
    logger.info("Email dispatch finished: %s sent, %s failed", summary.sent, summary.failed)
    return summary


def _skip_sms(record: DeliveryRecord, reason: str) -> str:
    record.sms_status = SmsStatus.SKIPPED
    record.sms_error = reason
    record.save(update_fields=["sms_status", "sms_error"])
    if reason:
        logger.info("SMS for delivery %s skipped: %s", record.pk, reason)
    return "skipped"


def _complete_sms(record: DeliveryRecord, campaign: Campaign, outcome: SendOutcome, now) -> str:
    record.sms_status = SmsStatus.SENT
    record.sms_sent_at = now
    record.sms_provider_id = outcome.provider_id
    record.sms_error = ""
    record.save(update_fields=["sms_status", "sms_sent_at", "sms_provider_id", "sms_error"])
    Campaign.objects.filter(pk=record.campaign_id).update(total_sms_sent=F("total_sms_sent") + 1)
    quota.count_sms_sent()
    _audit_safely("campaign_sms_sent", record, campaign, provider_id=outcome.provider_id)
    logger.info("SMS sent to %s for campaign %s (step %s)", record.recipient_id, campaign.pk, record.step_number)
    return "sent"


def _fail_sms(record: DeliveryRecord, campaign: Campaign, error: str) -> str:
    record.sms_status = SmsStatus.FAILED
    record.sms_error = error
    record.save(update_fields=["sms_status", "sms_error"])
    Campaign.objects.filter(pk=record.campaign_id).update(total_sms_failed=F("total_sms_failed") + 1)
    _audit_safely("campaign_sms_failed", record, campaign, error=error)
    logger.warning(
        "SMS for campaign %s, recipient %s, step %s failed: %s",
        record.campaign_id,
        record.recipient_id,
        record.step_number,
        error,
    )
    return "failed"


def dispatch_sms(record_id: int, sender, *, now=None) -> str | None:
    """Send one due SMS. Returns "sent", "failed", "skipped", or None if not claimable."""
    now = now or timezone.now()
    with transaction.atomic():
        record = (
            DeliveryRecord.objects.select_for_update(skip_locked=True)
            .filter(pk=record_id, sms_status=SmsStatus.NOT_SENT, scheduled_for__lte=now)
            .first()
        )
        if record is None:
            return None

        campaign = Campaign.objects.filter(pk=record.campaign_id).first()
        if campaign is None:
            return _skip_sms(record, "Campaign not found")
        step = campaign.get_step(record.step_number)
        if step is None or not step.send_sms or not step.sms_message:
            return _skip_sms(record, "")
        recipient = record.recipient
        if recipient is None:
            return _skip_sms(record, "Recipient not found")
        if not recipient.phone:
            return _skip_sms(record, "No phone number")
        if not recipient.sms_opt_in:
            return _skip_sms(record, "User opted out")
        if quota.daily_limit_reached():
            logger.error("Daily SMS limit reached (%s)", settings.SMS_DAILY_LIMIT)
            return _fail_sms(record, campaign, quota.DAILY_LIMIT_REACHED)

        body = truncate_sms(render(step.sms_message, build_render_context(record)))
        outcome = _send_safely(sender.send_sms, recipient.phone, body)
        try:
            with transaction.atomic():
                if outcome.success:
                    return _complete_sms(record, campaign, outcome, now)
                return _fail_sms(record, campaign, outcome.error)
        except Exception as exc:
            raise DeliveryNotRecorded(record.pk, outcome) from exc


def _settle_sms(record_id: int, exc: Exception, now) -> str | None:
    campaign_id = DeliveryRecord.objects.filter(pk=record_id).values_list("campaign_id", flat=True).first()
    pending = DeliveryRecord.objects.filter(pk=record_id, sms_status=SmsStatus.NOT_SENT)
    with transaction.atomic():
        if isinstance(exc, DeliveryNotRecorded) and exc.accepted:
            updated = pending.update(
                sms_status=SmsStatus.SENT,
                sms_sent_at=now,
                sms_provider_id=exc.outcome.provider_id,
                sms_error="",
            )
            counter, result = "total_sms_sent", "sent"
        else:
            updated = pending.update(sms_status=SmsStatus.FAILED, sms_error=_error_text(exc))
            counter, result = "total_sms_failed", "failed"
        if not updated:
            return None
        Campaign.objects.filter(pk=campaign_id).update(**{counter: F(counter) + 1})
    return result


def dispatch_due_sms(sender, *, now=None, limit: int | None = 50) -> DispatchSummary:
    now = now or timezone.now()
    summary = DispatchSummary()
    queryset = (
        DeliveryRecord.objects.filter(sms_status=SmsStatus.NOT_SENT, scheduled_for__lte=now)
        .order_by("scheduled_for", "pk")
        .values_list("pk", flat=True)
    )
    if limit:
        queryset = queryset[:limit]
    for record_id in list(queryset):
        try:
            result = dispatch_sms(record_id, sender, now=now)
        except Exception as exc:  # noqa: BLE001 - log and continue
            logger.exception("Unexpected error dispatching SMS for delivery %s", record_id)
            result = _settle_sms(record_id, exc, now)
        summary.count(result)
    if summary.processed:
        logger.info(
            "SMS dispatch finished: %s sent, %s failed, %s skipped",
            summary.sent,
            summary.failed,
            summary.skipped,
        )
    return summary
