"""Django settings for the hotel management backend.

Values come from the environment; a ``.env`` file next to ``manage.py`` is
loaded first when present.
"""

import os
from pathlib import Path

import structlog
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")


def env_bool(name, default=False):
    return os.environ.get(name, str(default)).lower() in ("1", "true", "yes", "on")


SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "replace-me-in-production")
DEBUG = env_bool("DJANGO_DEBUG")
ALLOWED_HOSTS = os.environ.get("DJANGO_ALLOWED_HOSTS", "*").split(",")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "hotel_management",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "hotel_management_backend.urls"

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

WSGI_APPLICATION = "hotel_management_backend.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("HOTEL_DB_PATH", str(BASE_DIR / "db.sqlite3")),
        # SQLite has no row locks; take the write lock when a transaction opens
        "OPTIONS": {"transaction_mode": "IMMEDIATE", "timeout": 20},
        # a file, not :memory:, so threads in tests contend for the same lock
        "TEST": {"NAME": os.environ.get("HOTEL_TEST_DB_PATH", str(BASE_DIR / "test_db.sqlite3"))},
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.environ.get("HOTEL_TIME_ZONE", "Africa/Kampala")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "hotel_management.authentication.BearerTokenAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.AllowAny",
    ],
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
    "DEFAULT_THROTTLE_CLASSES": [
        "rest_framework.throttling.AnonRateThrottle",
        "rest_framework.throttling.UserRateThrottle",
    ],
    "DEFAULT_THROTTLE_RATES": {
        "anon": os.environ.get("HOTEL_ANON_RATE", "100/hour"),
        "user": os.environ.get("HOTEL_USER_RATE", "400/hour"),
    },
    "EXCEPTION_HANDLER": "hotel_management.exceptions.api_exception_handler",
    "UNAUTHENTICATED_USER": "django.contrib.auth.models.AnonymousUser",
}

# Collaborators, selected by dotted path so tests can swap them out
HOTEL_IDENTITY_PROVIDER = os.environ.get(
    "HOTEL_IDENTITY_PROVIDER", "hotel_management.identity.FirebaseIdentityProvider"
)
HOTEL_PAYMENT_GATEWAY = os.environ.get("HOTEL_PAYMENT_GATEWAY", "hotel_management.gateway.RelworxGateway")
HOTEL_DEFAULT_COUNTRY_CODE = os.environ.get("HOTEL_DEFAULT_COUNTRY_CODE", "+256")

FIREBASE_CREDENTIALS = os.environ.get("FIREBASE_CREDENTIALS", "")

RELWORX_API_KEY = os.environ.get("RELWORX_API_KEY", "")
RELWORX_ACCOUNT_NO = os.environ.get("RELWORX_ACCOUNT_NO", "")
RELWORX_BASE_URL = os.environ.get("RELWORX_BASE_URL", "https://payments.relworx.com/api")
RELWORX_CURRENCY = os.environ.get("RELWORX_CURRENCY", "UGX")
RELWORX_TIMEOUT = float(os.environ.get("RELWORX_TIMEOUT", "30"))

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {
            "()": "structlog.stdlib.ProcessorFormatter",
            "processor": structlog.processors.JSONRenderer(),
            "foreign_pre_chain": [
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso"),
            ],
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "level": os.environ.get("HOTEL_LOG_LEVEL", "INFO"),
        }
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "django": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "hotel_management": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "hotel_management.payments": {"handlers": ["console"], "level": "INFO", "propagate": False},
    },
}
