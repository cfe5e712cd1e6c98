from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    class Role(models.TextChoices):
        ADMIN = "admin", "Admin"
        INSTRUCTOR = "instructor", "Instructor"
        MEMBER = "member", "Member"

    class AcquisitionSource(models.TextChoices):
        DIRECT = "direct", "Direct"
        CLASSPASS = "classpass", "ClassPass"
        REFERRAL = "referral", "Referral"

    role = models.CharField(max_length=32, choices=Role.choices, default=Role.MEMBER)
    phone = models.CharField(max_length=32, blank=True)
    sms_opt_in = models.BooleanField(default=True)
    acquisition_source = models.CharField(
        max_length=16,
        choices=AcquisitionSource.choices,
        default=AcquisitionSource.DIRECT,
    )
    first_classpass_booking_at = models.DateTimeField(null=True, blank=True)
    converted_to_member = models.BooleanField(default=False)

    @property
    def is_admin(self) -> bool:
        return self.role == self.Role.ADMIN

    @property
    def is_instructor(self) -> bool:
        return self.role == self.Role.INSTRUCTOR

    @property
    def is_member(self) -> bool:
        return self.role == self.Role.MEMBER

    @property
    def display_name(self) -> str:
        return self.get_full_name() or self.username
