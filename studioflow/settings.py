import os
from pathlib import Path

from celery.schedules import crontab

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool = False) -> bool:
    return os.environ.get(name, str(default)).lower() in {"1", "true", "yes", "on"}


SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "studioflow-dev-secret-key")
DEBUG = _env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = [host for host in os.environ.get("DJANGO_ALLOWED_HOSTS", "*").split(",") if host]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "accounts",
    "auditing",
    "studio",
    "campaigns.apps.CampaignsConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
]

ROOT_URLCONF = "studioflow.urls"
WSGI_APPLICATION = "studioflow.wsgi.application"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

if os.environ.get("POSTGRES_DB"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ["POSTGRES_DB"],
            "USER": os.environ.get("POSTGRES_USER", "postgres"),
            "PASSWORD": os.environ.get("POSTGRES_PASSWORD", ""),
            "HOST": os.environ.get("POSTGRES_HOST", "localhost"),
            "PORT": os.environ.get("POSTGRES_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

AUTH_USER_MODEL = "accounts.User"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.environ.get("TIME_ZONE", "America/Los_Angeles")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"

# Email delivery
EMAIL_BACKEND = os.environ.get("EMAIL_BACKEND", "django.core.mail.backends.smtp.EmailBackend")
EMAIL_HOST = os.environ.get("SMTP_HOST", "localhost")
EMAIL_PORT = int(os.environ.get("SMTP_PORT", "587"))
EMAIL_HOST_USER = os.environ.get("SMTP_USER", "")
EMAIL_HOST_PASSWORD = os.environ.get("SMTP_PASS", "")
EMAIL_USE_TLS = _env_bool("SMTP_USE_TLS", True)
DEFAULT_FROM_EMAIL = os.environ.get("SMTP_FROM", EMAIL_HOST_USER or "hello@thefevercollective.com")

# SMS delivery
SMS_ENABLED = _env_bool("SMS_ENABLED", False)
TWILIO_ACCOUNT_SID = os.environ.get("TWILIO_ACCOUNT_SID", "")
TWILIO_AUTH_TOKEN = os.environ.get("TWILIO_AUTH_TOKEN", "")
TWILIO_PHONE_NUMBER = os.environ.get("TWILIO_PHONE_NUMBER", "")
TWILIO_WEBHOOK_VALIDATE = _env_bool("TWILIO_WEBHOOK_VALIDATE", True)

# Campaign engine
SITE_BASE_URL = os.environ.get("SITE_BASE_URL", "http://localhost:8000")
STUDIO_NAME = os.environ.get("STUDIO_NAME", "The Fever Studio")
STUDIO_PHONE = os.environ.get("STUDIO_PHONE", "+1 (408) 805-5814")
STUDIO_EMAIL = os.environ.get("STUDIO_EMAIL", "hello@thefevercollective.com")
CAMPAIGN_SEND_TIMEOUT = int(os.environ.get("CAMPAIGN_SEND_TIMEOUT", "10"))
CAMPAIGN_DISPATCH_BATCH_SIZE = int(os.environ.get("CAMPAIGN_DISPATCH_BATCH_SIZE", "500"))
CAMPAIGN_SMS_BATCH_SIZE = int(os.environ.get("CAMPAIGN_SMS_BATCH_SIZE", "50"))
# 0 disables the cap
SMS_DAILY_LIMIT = int(os.environ.get("SMS_DAILY_LIMIT", "500"))
IP_HASH_SALT = os.environ.get("IP_HASH_SALT", SECRET_KEY)

# Celery
CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_ALWAYS_EAGER = _env_bool("CELERY_TASK_ALWAYS_EAGER", False)
CELERY_BEAT_SCHEDULE = {
    "dispatch-due-emails": {
        "task": "campaigns.tasks.dispatch_due_emails_task",
        "schedule": crontab(minute=0),
    },
    "dispatch-due-sms": {
        "task": "campaigns.tasks.dispatch_due_sms_task",
        "schedule": crontab(minute="*/5"),
    },
    "scan-class-reminders": {
        "task": "campaigns.tasks.scan_class_reminders_task",
        "schedule": crontab(minute="*/30"),
    },
    "scan-abandoned-bookings": {
        "task": "campaigns.tasks.scan_abandoned_bookings_task",
        "schedule": crontab(minute=15),
    },
    "scan-inactive-users": {
        "task": "campaigns.tasks.scan_inactive_users_task",
        "schedule": crontab(hour=9, minute=30),
    },
    "scan-membership-expiring": {
        "task": "campaigns.tasks.scan_membership_expiring_task",
        "schedule": crontab(hour=10, minute=0),
    },
    "scan-credit-expiring": {
        "task": "campaigns.tasks.scan_credit_expiring_task",
        "schedule": crontab(hour=10, minute=30),
    },
    "reset-daily-sms-usage": {
        "task": "campaigns.tasks.reset_daily_sms_usage_task",
        "schedule": crontab(hour=0, minute=0),
    },
    "reconcile-campaign-stats": {
        "task": "campaigns.tasks.reconcile_campaign_stats_task",
        "schedule": crontab(hour=3, minute=0),
    },
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": os.environ.get("LOG_LEVEL", "INFO"),
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": os.environ.get("DJANGO_LOG_LEVEL", "WARNING"),
            "propagate": False,
        },
    },
}
