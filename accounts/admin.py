from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from accounts.models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("username", "email", "role", "phone", "sms_opt_in", "acquisition_source")
    list_filter = ("role", "acquisition_source", "sms_opt_in")
    fieldsets = BaseUserAdmin.fieldsets + (
        (
            "Studio",
            {
                "fields": (
                    "role",
                    "phone",
                    "sms_opt_in",
                    "acquisition_source",
                    "first_classpass_booking_at",
                    "converted_to_member",
                )
            },
        ),
    )
