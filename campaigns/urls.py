from django.urls import path

from campaigns import views

app_name = "campaigns"

urlpatterns = [
    path("automated-campaigns/", views.campaign_collection, name="campaign-list"),
    path(
        "automated-campaigns/scheduled/<int:record_id>/",
        views.cancel_scheduled,
        name="cancel-scheduled",
    ),
    path("automated-campaigns/<int:campaign_id>/", views.campaign_detail, name="campaign-detail"),
    path("automated-campaigns/<int:campaign_id>/toggle/", views.toggle_campaign, name="campaign-toggle"),
    path("automated-campaigns/<int:campaign_id>/stats/", views.campaign_stats, name="campaign-stats"),
    path(
        "automated-campaigns/<int:campaign_id>/scheduled/",
        views.scheduled_deliveries,
        name="campaign-scheduled",
    ),
    path("sms/webhook/incoming/", views.sms_webhook, name="sms-webhook"),
    path("email-tracking/open/<str:token>/", views.track_open, name="track-open"),
    path("email-tracking/click/<str:token>/", views.track_click, name="track-click"),
    path(
        "email-tracking/analytics/<int:campaign_id>/",
        views.campaign_analytics,
        name="campaign-analytics",
    ),
]
