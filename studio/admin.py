from django.contrib import admin

from studio.models import Booking, Event, MailingList, Membership


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ("title", "starts_at", "location", "is_active")
    list_filter = ("is_active", "starts_at")
    search_fields = ("title", "location")


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ("user", "event", "payment_status", "booking_source", "checked_in", "created_at")
    list_filter = ("payment_status", "booking_source", "checked_in")
    search_fields = ("user__email", "event__title")


@admin.register(Membership)
class MembershipAdmin(admin.ModelAdmin):
    list_display = ("user", "tier", "status", "credits_remaining", "credits_expire_at", "classes_attended")
    list_filter = ("tier", "status")
    search_fields = ("user__email",)


@admin.register(MailingList)
class MailingListAdmin(admin.ModelAdmin):
    list_display = ("name", "created_at")
    filter_horizontal = ("members",)
