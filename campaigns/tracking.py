from __future__ import annotations

import hashlib
import ipaddress
import re
from dataclasses import dataclass
from html import unescape
from urllib.parse import urlencode

from django.conf import settings
from django.urls import reverse

HREF_RE = re.compile(r"""href=(["'])(https?://[^"']+)\1""", re.IGNORECASE)


@dataclass(frozen=True)
class ClientSignals:
    user_agent: str = ""
    device_type: str = ""
    email_client_hint: str = ""
    ip_address_truncated: str = ""
    ip_hash: str = ""


def _normalize_contains(value: str, *needles: str) -> bool:
    lowered = value.lower()
    return any(needle in lowered for needle in needles)


def device_type_for(user_agent: str) -> str:
    ua = user_agent or ""
    if _normalize_contains(ua, "ipad", "tablet"):
        return "tablet"
    if _normalize_contains(ua, "iphone", "android", "mobile"):
        return "mobile"
    if ua:
        return "desktop"
    return "unknown"


def email_client_for(user_agent: str) -> str:
    ua = user_agent or ""
    if _normalize_contains(ua, "googleimageproxy", "gmail"):
        return "Gmail"
    if _normalize_contains(ua, "outlook", "owa"):
        return "Outlook"
    if _normalize_contains(ua, "apple mail", "mail/"):
        return "AppleMail"
    if _normalize_contains(ua, "thunderbird"):
        return "Thunderbird"
    return "other"


def truncate_ip(ip_value: str | None) -> str:
    if not ip_value:
        return ""
    try:
        ip_obj = ipaddress.ip_address(ip_value)
    except ValueError:
        return ""
    prefix = 24 if ip_obj.version == 4 else 48
    return str(ipaddress.ip_network(f"{ip_obj}/{prefix}", strict=False))


def hash_ip(ip_value: str | None) -> str:
    if not ip_value:
        return ""
    salt = settings.IP_HASH_SALT
    return hashlib.sha256(f"{salt}:{ip_value}".encode("utf-8")).hexdigest()


def client_ip(request) -> str | None:
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR")


def signals_from_request(request) -> ClientSignals:
    user_agent = request.META.get("HTTP_USER_AGENT", "")
    ip_value = client_ip(request)
    return ClientSignals(
        user_agent=user_agent,
        device_type=device_type_for(user_agent),
        email_client_hint=email_client_for(user_agent),
        ip_address_truncated=truncate_ip(ip_value),
        ip_hash=hash_ip(ip_value),
    )


def build_tracking_urls(token: str) -> dict[str, str]:
    base_url = settings.SITE_BASE_URL.rstrip("/")
    return {
        "open_url": f"{base_url}{reverse('campaigns:track-open', kwargs={'token': token})}",
        "click_url": f"{base_url}{reverse('campaigns:track-click', kwargs={'token': token})}",
    }


def add_tracking(html: str, token: str) -> str:
    """Route every absolute link through the click endpoint and append the open pixel."""
    urls = build_tracking_urls(token)
    click_url = urls["click_url"]

    def _rewrite(match: re.Match) -> str:
        quote, target = match.group(1), match.group(2)
        if target.startswith(click_url):
            return match.group(0)
        return f"href={quote}{click_url}?{urlencode({'url': unescape(target)})}{quote}"

    tracked = HREF_RE.sub(_rewrite, html or "")
    pixel = f'<img src="{urls["open_url"]}" width="1" height="1" style="display:none;" alt="" />'
    return f"{tracked}{pixel}"
