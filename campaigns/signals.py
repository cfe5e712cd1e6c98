from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

from accounts.models import User
from campaigns.triggers import on_classpass_booking, on_new_registration
from studio.models import Booking


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def enroll_new_registration(sender, instance, created, raw=False, **kwargs):
    if created and not raw:
        on_new_registration(instance)


@receiver(post_save, sender=Booking)
def advance_classpass_funnel(sender, instance, created, raw=False, **kwargs):
    if not created or raw or instance.booking_source != Booking.Source.CLASSPASS:
        return

    user = instance.user
    if user.first_classpass_booking_at is None:
        user.first_classpass_booking_at = instance.created_at
        update_fields = ["first_classpass_booking_at"]
        if user.acquisition_source == User.AcquisitionSource.DIRECT and not user.bookings.exclude(
            pk=instance.pk
        ).exists():
            user.acquisition_source = User.AcquisitionSource.CLASSPASS
            update_fields.append("acquisition_source")
        user.save(update_fields=update_fields)
    on_classpass_booking(instance)
