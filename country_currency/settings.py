"""
Django settings for country_currency project.

Every deployment-specific value can be overridden with an environment
variable of the same name.
"""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get(
    "DJANGO_SECRET_KEY", "django-insecure-country-currency-dev-key"
)
DEBUG = os.environ.get("DJANGO_DEBUG", "false").lower() in ("1", "true", "yes")
ALLOWED_HOSTS = os.environ.get("DJANGO_ALLOWED_HOSTS", "*").split(",")

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rest_framework",
    "countries",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "country_currency.urls"
WSGI_APPLICATION = "country_currency.wsgi.application"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {"context_processors": []},
    },
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("DATABASE_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = False
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
APPEND_SLASH = False

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.AllowAny"],
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "UNAUTHENTICATED_USER": None,
    "EXCEPTION_HANDLER": "countries.exceptions.custom_exception_handler",
}

# External data sources
COUNTRY_DATA_API = os.environ.get(
    "COUNTRY_DATA_API",
    "https://restcountries.com/v2/all?fields=name,capital,region,population,flag,currencies",
)
EXCHANGE_RATE_URL = os.environ.get(
    "EXCHANGE_RATE_URL", "https://open.er-api.com/v6/latest/USD"
)
SOURCE_TIMEOUT = float(os.environ.get("SOURCE_TIMEOUT", "10"))
EXCHANGE_TIMEOUT = float(os.environ.get("EXCHANGE_TIMEOUT", "5"))
INGESTION_BATCH_SIZE = int(os.environ.get("INGESTION_BATCH_SIZE", "10"))

# Summary image cache; empty means "derive from ENVIRONMENT"
ENVIRONMENT = os.environ.get("ENVIRONMENT", "production")
REPORT_CACHE_DIR = os.environ.get("REPORT_CACHE_DIR", "")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "countries": {
            "handlers": ["console"],
            "level": os.environ.get("COUNTRIES_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}
