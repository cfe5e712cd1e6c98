from __future__ import annotations

from accounts.models import User
from campaigns.models import Campaign
from campaigns.sending import SendOutcome
from campaigns.sequence import normalize_sequence


def make_user(username: str, *, email: str | None = None, **extra) -> User:
    extra.setdefault("first_name", username.capitalize())
    extra.setdefault("last_name", "Tester")
    return User.objects.create_user(
        username=username,
        password="pass",
        email=f"{username}@example.com" if email is None else email,
        **extra,
    )


def make_admin(username: str = "owner") -> User:
    return make_user(username, role=User.Role.ADMIN)


def step(subject: str = "Hi {{name}}", message: str = "Hello {{ firstName }}", **extra) -> dict:
    return {"subject": subject, "message": message, **extra}


def make_campaign(
    owner: User,
    *,
    name: str = "Reminder",
    trigger_kind: str = Campaign.TriggerKind.CLASS_REMINDER,
    sequence: list | None = None,
    target_audience: dict | None = None,
    trigger_config: dict | None = None,
    is_active: bool = True,
) -> Campaign:
    return Campaign.objects.create(
        name=name,
        trigger_kind=trigger_kind,
        sequence=normalize_sequence(sequence or [step()]),
        target_audience={"target_type": "all"} if target_audience is None else target_audience,
        trigger_config=trigger_config or {},
        is_active=is_active,
        created_by=owner,
    )


class FakeEmailSender:
    def __init__(self, *, error: str = "", raises: Exception | None = None) -> None:
        self.error = error
        self.raises = raises
        self.sent: list[tuple[str, str, str]] = []

    def send_email(self, to: str, subject: str, html: str) -> SendOutcome:
        self.sent.append((to, subject, html))
        if self.raises is not None:
            raise self.raises
        if self.error:
            return SendOutcome.failed(self.error)
        return SendOutcome.ok()


class FakeSmsSender:
    def __init__(self, *, error: str = "") -> None:
        self.error = error
        self.sent: list[tuple[str, str]] = []

    def send_sms(self, to_phone: str, body: str) -> SendOutcome:
        self.sent.append((to_phone, body))
        if self.error:
            return SendOutcome.failed(self.error)
        return SendOutcome.ok(provider_id=f"SM{len(self.sent):04d}")
