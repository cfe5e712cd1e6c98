from __future__ import annotations

import json
import logging
from functools import wraps
from urllib.parse import urlsplit

from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import HttpResponse, HttpResponseRedirect, JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST
from twilio.request_validator import RequestValidator
from twilio.twiml.messaging_response import MessagingResponse

from campaigns import services, sms_replies
from campaigns.engagement import engagement_analytics, record_click, record_open
from campaigns.models import Campaign, DeliveryRecord
from campaigns.serializers import serialize_campaign, serialize_delivery
from campaigns.tracking import signals_from_request

logger = logging.getLogger(__name__)

PIXEL_BYTES = (
    b"GIF89a\x01\x00\x01\x00\x80\x00\x00\x00\x00\x00\xff\xff\xff!"
    b"\xf9\x04\x01\x00\x00\x00\x00,\x00\x00\x00\x00\x01\x00\x01\x00"
    b"\x00\x02\x02D\x01\x00;"
)
DEFAULT_PAGE_SIZE = 20
REDIRECT_SCHEMES = ("http", "https")


def admin_required(view):
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        user = request.user
        if not user.is_authenticated:
            return JsonResponse({"error": "Authentication required"}, status=401)
        if not (user.is_superuser or user.is_admin):
            return JsonResponse({"error": "Admin access required"}, status=403)
        return view(request, *args, **kwargs)

    return wrapper


def _json_body(request) -> dict | None:
    try:
        payload = json.loads(request.body or b"{}")
    except (TypeError, ValueError):
        return None
    return payload if isinstance(payload, dict) else None


def _validation_error(exc: ValidationError) -> JsonResponse:
    if hasattr(exc, "error_dict"):
        details = exc.message_dict
        message = "; ".join(f"{field}: {' '.join(errors)}" for field, errors in details.items())
    else:
        details = exc.messages
        message = " ".join(exc.messages)
    return JsonResponse({"error": message, "details": details}, status=400)


def _positive_int(raw, default: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


@require_GET
def track_open(request, token):
    try:
        record_open(token, signals=signals_from_request(request))
    except Exception:  # noqa: BLE001 - the pixel is served regardless
        logger.exception("Failed to record open for token %s", token)
    response = HttpResponse(PIXEL_BYTES, content_type="image/gif")
    response["Cache-Control"] = "no-store, no-cache, must-revalidate, private"
    response["Pragma"] = "no-cache"
    response["Expires"] = "0"
    return response


@require_GET
def track_click(request, token):
    """Record a click and redirect to ``url``.

    Only absolute http(s) destinations are redirected to; anything else is a 400.
    """
    url = request.GET.get("url", "").strip()
    if not url:
        return JsonResponse({"error": "Missing url parameter"}, status=400)
    parts = urlsplit(url)
    if parts.scheme.lower() not in REDIRECT_SCHEMES or not parts.netloc:
        return JsonResponse({"error": "url must be an absolute http or https URL"}, status=400)
    try:
        record_click(token, url, signals=signals_from_request(request))
    except Exception:  # noqa: BLE001 - the redirect happens regardless
        logger.exception("Failed to record click for token %s", token)
    return HttpResponseRedirect(url)


def _twilio_signature_valid(request) -> bool:
    if not (settings.TWILIO_WEBHOOK_VALIDATE and settings.TWILIO_AUTH_TOKEN):
        return True
    validator = RequestValidator(settings.TWILIO_AUTH_TOKEN)
    return validator.validate(
        request.build_absolute_uri(),
        request.POST.dict(),
        request.headers.get("X-Twilio-Signature", ""),
    )


@csrf_exempt
@require_POST
def sms_webhook(request):
    """Twilio inbound message hook; STOP/START keywords flip the sender's SMS opt-in."""
    if not _twilio_signature_valid(request):
        logger.warning("Rejected SMS webhook with an invalid Twilio signature")
        return HttpResponse(status=403)
    twiml = MessagingResponse()
    try:
        twiml.message(sms_replies.handle_reply(request.POST.get("From", ""), request.POST.get("Body", "")))
    except Exception:  # noqa: BLE001 - Twilio still needs valid TwiML
        logger.exception("Failed to handle inbound SMS from %s", request.POST.get("From", ""))
        twiml = MessagingResponse()
    return HttpResponse(str(twiml), content_type="text/xml")


@require_GET
@admin_required
def campaign_analytics(request, campaign_id):
    campaign = get_object_or_404(Campaign, pk=campaign_id)
    return JsonResponse({"campaign_id": campaign.pk, "name": campaign.name, **engagement_analytics(campaign)})


@require_http_methods(["GET", "POST"])
@admin_required
def campaign_collection(request):
    if request.method == "GET":
        campaigns = Campaign.objects.select_related("created_by").order_by("-created_at")
        trigger_kind = request.GET.get("trigger_kind")
        if trigger_kind:
            campaigns = campaigns.filter(trigger_kind=trigger_kind)
        return JsonResponse({"campaigns": [serialize_campaign(campaign) for campaign in campaigns]})

    payload = _json_body(request)
    if payload is None:
        return JsonResponse({"error": "Request body must be a JSON object"}, status=400)
    try:
        campaign = services.create_campaign(payload, created_by=request.user)
    except ValidationError as exc:
        return _validation_error(exc)
    return JsonResponse(serialize_campaign(campaign), status=201)


@require_http_methods(["GET", "PUT", "PATCH", "DELETE"])
@admin_required
def campaign_detail(request, campaign_id):
    campaign = get_object_or_404(Campaign.objects.select_related("created_by"), pk=campaign_id)
    if request.method == "GET":
        return JsonResponse(serialize_campaign(campaign))

    if request.method == "DELETE":
        deleted = services.delete_campaign(campaign, actor=request.user)
        return JsonResponse({"message": "Campaign deleted", "deliveries_deleted": deleted})

    payload = _json_body(request)
    if payload is None:
        return JsonResponse({"error": "Request body must be a JSON object"}, status=400)
    try:
        campaign = services.update_campaign(campaign, payload, actor=request.user)
    except ValidationError as exc:
        return _validation_error(exc)
    return JsonResponse(serialize_campaign(campaign))


@require_POST
@admin_required
def toggle_campaign(request, campaign_id):
    campaign = get_object_or_404(Campaign, pk=campaign_id)
    services.toggle_campaign(campaign, actor=request.user)
    return JsonResponse({"id": campaign.pk, "is_active": campaign.is_active})


@require_GET
@admin_required
def campaign_stats(request, campaign_id):
    campaign = get_object_or_404(Campaign, pk=campaign_id)
    stats = services.campaign_stats(campaign)
    stats["recent"] = [serialize_delivery(record) for record in stats["recent"]]
    return JsonResponse({"campaign_id": campaign.pk, "name": campaign.name, **stats})


@require_GET
@admin_required
def scheduled_deliveries(request, campaign_id):
    campaign = get_object_or_404(Campaign, pk=campaign_id)
    page = _positive_int(request.GET.get("page"), 1)
    limit = _positive_int(request.GET.get("limit"), DEFAULT_PAGE_SIZE)
    result = services.scheduled_deliveries(campaign, page=page, limit=limit)
    return JsonResponse(
        {
            "records": [serialize_delivery(record) for record in result["records"]],
            "pagination": result["pagination"],
        }
    )


@require_http_methods(["DELETE"])
@admin_required
def cancel_scheduled(request, record_id):
    record = get_object_or_404(DeliveryRecord, pk=record_id)
    try:
        record = services.cancel_delivery(record, actor=request.user)
    except ValidationError as exc:
        return _validation_error(exc)
    return JsonResponse({"message": "Scheduled email cancelled", "record": serialize_delivery(record)})
