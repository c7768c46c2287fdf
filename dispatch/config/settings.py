"""
Django settings for the dispatch project.

Values come from the environment (a local ``.env`` file is loaded when
present). The ``DISPATCH_*`` settings tune the order lifecycle core.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-secret-key")
DEBUG = os.environ.get("DJANGO_DEBUG", "False").lower() == "true"
ALLOWED_HOSTS = os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rest_framework",
    "channels",
    "apps.core",
    "apps.accounts",
    "apps.orders",
    "apps.drivers",
    "apps.notifications",
    "apps.events",
    "apps.chat",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "config.urls"
ASGI_APPLICATION = "config.asgi.application"

DATABASES = {
    "default": {
        "ENGINE": os.environ.get("DB_ENGINE", "django.db.backends.postgresql"),
        "NAME": os.environ.get("DB_NAME", "dispatch"),
        "USER": os.environ.get("DB_USER", "dispatch"),
        "PASSWORD": os.environ.get("DB_PASSWORD", ""),
        "HOST": os.environ.get("DB_HOST", "localhost"),
        "PORT": os.environ.get("DB_PORT", "5432"),
        "CONN_MAX_AGE": 60,
        "OPTIONS": {"connect_timeout": 5},
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
USE_TZ = True
TIME_ZONE = "UTC"

# Redis
REDIS_HOST = os.environ.get("REDIS_HOST", "localhost")
REDIS_PORT = int(os.environ.get("REDIS_PORT", 6379))
REDIS_DB = int(os.environ.get("REDIS_DB", 0))

CACHES = {
    "default": {
        "BACKEND": "django_redis.cache.RedisCache",
        "LOCATION": f"redis://{REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}",
        "OPTIONS": {"CLIENT_CLASS": "django_redis.client.DefaultClient"},
    }
}

CHANNEL_LAYERS = {
    "default": {
        "BACKEND": "channels_redis.core.RedisChannelLayer",
        "CONFIG": {"hosts": [(REDIS_HOST, REDIS_PORT)]},
    }
}

# Kafka
KAFKA_BOOTSTRAP_SERVERS = os.environ.get("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092")
KAFKA_CLIENT_ID = os.environ.get("KAFKA_CLIENT_ID", "dispatch-service")
KAFKA_GROUP_ID = os.environ.get("KAFKA_GROUP_ID", "dispatch-service")

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "apps.accounts.authentication.IdentityHeaderAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "UNAUTHENTICATED_USER": None,
}

# Push gateway (FCM legacy HTTP API)
FCM_ENDPOINT = os.environ.get("FCM_ENDPOINT", "https://fcm.googleapis.com/fcm/send")
FCM_SERVER_KEY = os.environ.get("FCM_SERVER_KEY", "")
FCM_TIMEOUT_SECONDS = float(os.environ.get("FCM_TIMEOUT_SECONDS", 5))

# Order lifecycle core
DISPATCH_STORE_RETRY_ATTEMPTS = int(os.environ.get("DISPATCH_STORE_RETRY_ATTEMPTS", 3))
DISPATCH_STORE_RETRY_BASE_DELAY = float(os.environ.get("DISPATCH_STORE_RETRY_BASE_DELAY", 0.2))
DISPATCH_STORE_RETRY_MAX_DELAY = float(os.environ.get("DISPATCH_STORE_RETRY_MAX_DELAY", 2.0))
DISPATCH_TRANSITION_ATTEMPTS = int(os.environ.get("DISPATCH_TRANSITION_ATTEMPTS", 3))
DISPATCH_NOTIFY_RETRY_ATTEMPTS = int(os.environ.get("DISPATCH_NOTIFY_RETRY_ATTEMPTS", 3))
DISPATCH_NOTIFY_IN_BACKGROUND = os.environ.get("DISPATCH_NOTIFY_IN_BACKGROUND", "True").lower() == "true"
DISPATCH_SCHEDULE_INTERVAL_SECONDS = int(os.environ.get("DISPATCH_SCHEDULE_INTERVAL_SECONDS", 60))
DISPATCH_SCHEDULE_CLAIM_TTL_SECONDS = int(os.environ.get("DISPATCH_SCHEDULE_CLAIM_TTL_SECONDS", 300))
DISPATCH_LOCATION_FRESH_SECONDS = int(os.environ.get("DISPATCH_LOCATION_FRESH_SECONDS", 300))
DISPATCH_AUTO_REOFFER = os.environ.get("DISPATCH_AUTO_REOFFER", "True").lower() == "true"
DISPATCH_EVENTS_ENABLED = os.environ.get("DISPATCH_EVENTS_ENABLED", "True").lower() == "true"

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": os.environ.get("LOG_LEVEL", "INFO"),
    },
    "loggers": {
        "django.db.backends": {"level": "WARNING"},
        "confluent_kafka": {"level": "WARNING"},
    },
}
