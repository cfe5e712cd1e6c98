from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Any

from django.core.exceptions import ValidationError


@dataclass(frozen=True)
class Step:
    step_number: int
    subject: str
    message: str
    delay_days: int = 0
    delay_hours: int = 0
    send_sms: bool = False
    sms_message: str = ""

    @property
    def delay(self) -> timedelta:
        return timedelta(days=self.delay_days, hours=self.delay_hours)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Step:
        return cls(
            step_number=int(raw.get("step_number", 0)),
            subject=raw.get("subject", ""),
            message=raw.get("message", ""),
            delay_days=int(raw.get("delay_days") or 0),
            delay_hours=int(raw.get("delay_hours") or 0),
            send_sms=bool(raw.get("send_sms", False)),
            sms_message=raw.get("sms_message") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _coerce_delay(value: Any, label: str, errors: list[str]) -> int:
    if value in (None, ""):
        return 0
    if isinstance(value, bool):
        errors.append(f"{label} must be a whole number.")
        return 0
    try:
        number = int(value)
    except (TypeError, ValueError):
        errors.append(f"{label} must be a whole number.")
        return 0
    if number != value and not isinstance(value, str):
        errors.append(f"{label} must be a whole number.")
        return 0
    if number < 0:
        errors.append(f"{label} cannot be negative.")
        return 0
    return number


def normalize_sequence(raw_sequence: Any) -> list[dict[str, Any]]:
    """Validate a sequence payload and renumber its steps 1..N.

    Step numbers supplied by the caller are ignored; list order decides.
    Raises ValidationError listing every problem found.
    """
    if not isinstance(raw_sequence, list) or not raw_sequence:
        raise ValidationError({"sequence": ["At least one email in sequence is required."]})

    errors: list[str] = []
    steps: list[dict[str, Any]] = []
    for index, raw in enumerate(raw_sequence, start=1):
        if not isinstance(raw, dict):
            errors.append(f"Step {index} must be an object.")
            continue
        subject = str(raw.get("subject") or "").strip()
        message = str(raw.get("message") or "").strip()
        if not subject:
            errors.append(f"Step {index}: email subject is required.")
        if not message:
            errors.append(f"Step {index}: email message is required.")
        delay_days = _coerce_delay(raw.get("delay_days"), f"Step {index}: delay_days", errors)
        delay_hours = _coerce_delay(raw.get("delay_hours"), f"Step {index}: delay_hours", errors)
        send_sms = bool(raw.get("send_sms", False))
        sms_message = str(raw.get("sms_message") or "").strip()
        if send_sms and not sms_message:
            errors.append(f"Step {index}: sms_message is required when send_sms is enabled.")
        steps.append(
            Step(
                step_number=index,
                subject=subject,
                message=message,
                delay_days=delay_days,
                delay_hours=delay_hours,
                send_sms=send_sms,
                sms_message=sms_message,
            ).to_dict()
        )

    if errors:
        raise ValidationError({"sequence": errors})
    return steps
