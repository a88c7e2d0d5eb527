"""
Django settings for the Condo project.

Condo - Assembly voting and attendance for condominiums
"""

import os
from pathlib import Path

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# Load .env file from project root
from dotenv import load_dotenv

env_path = BASE_DIR.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


# Quick-start development settings - unsuitable for production
# See https://docs.djangoproject.com/en/stable/howto/deployment/checklist/

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.environ.get("SECRET_KEY", "django-insecure-change-me-in-production-with-a-real-secret-key")

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.environ.get("DEBUG", "True").lower() in ("true", "1", "yes")

# Site URL for check-in links (QR codes)
SITE_URL = os.environ.get("SITE_URL", "http://localhost:8000")

# Parse domain from SITE_URL
from urllib.parse import urlparse

_site_domain = urlparse(SITE_URL).netloc

# Allowed hosts from environment (filter empty strings)
_allowed_hosts_env = os.environ.get("ALLOWED_HOSTS", "")
ALLOWED_HOSTS = [h.strip() for h in _allowed_hosts_env.split(",") if h.strip()]

# Ensure we always have localhost for health checks + domain from SITE_URL
for _host in ("localhost", "testserver", _site_domain.split(":")[0]):
    if _host and _host not in ALLOWED_HOSTS:
        ALLOWED_HOSTS.append(_host)

# CSRF trusted origins from environment (filter empty strings)
_csrf_env = os.environ.get("CSRF_TRUSTED_ORIGINS", "")
CSRF_TRUSTED_ORIGINS = [o.strip() for o in _csrf_env.split(",") if o.strip()]

# Ensure SITE_URL is always in CSRF trusted origins
if SITE_URL and SITE_URL not in CSRF_TRUSTED_ORIGINS:
    CSRF_TRUSTED_ORIGINS.append(SITE_URL)


# Application definition

INSTALLED_APPS = [
    # Unfold Admin Theme (must come before django.contrib.admin)
    "unfold",
    "unfold.contrib.filters",
    # Django Core
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Condo apps
    "apps.common",
    "apps.tenants",
    "apps.assemblies",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    # Database error handler - JSON 503 on DB connection issues
    "apps.common.middleware.DatabaseErrorMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    # Condominium context (request.condominium / request.membership)
    "apps.tenants.middleware.CondominiumMiddleware",
]

ROOT_URLCONF = "condo.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "condo.wsgi.application"


# Database
# https://docs.djangoproject.com/en/stable/ref/settings/#databases

DATABASE_URL = os.environ.get("DATABASE_URL", f"sqlite:///{BASE_DIR / 'db.sqlite3'}")

# Parse DATABASE_URL
import dj_database_url

DATABASES = {
    "default": dj_database_url.parse(
        DATABASE_URL,
        conn_max_age=600,
        conn_health_checks=True,
    )
}


# Cache - use Redis if available, fallback to local memory
REDIS_URL = os.environ.get("REDIS_URL", "")

if REDIS_URL and not DEBUG:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.redis.RedisCache",
            "LOCATION": REDIS_URL,
        }
    }
    SESSION_ENGINE = "django.contrib.sessions.backends.cache"
    SESSION_CACHE_ALIAS = "default"
else:
    # Use local memory cache for development
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        }
    }
    SESSION_ENGINE = "django.contrib.sessions.backends.db"


# Password validation
# https://docs.djangoproject.com/en/stable/ref/settings/#auth-password-validators

AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
        "OPTIONS": {"min_length": 8},
    },
    {
        "NAME": "django.contrib.auth.password_validation.CommonPasswordValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.NumericPasswordValidator",
    },
]


# Internationalization
# https://docs.djangoproject.com/en/stable/topics/i18n/

LANGUAGE_CODE = "en-us"

TIME_ZONE = os.environ.get("TIME_ZONE", "America/Sao_Paulo")

USE_I18N = True

USE_TZ = True


# Static files (CSS, JavaScript, Images)
# https://docs.djangoproject.com/en/stable/howto/static-files/

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# WhiteNoise for static files (only in production)
if not DEBUG:
    STORAGES = {
        "default": {
            "BACKEND": "django.core.files.storage.FileSystemStorage",
        },
        "staticfiles": {
            "BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage",
        },
    }


# Media files (proxy documents)
MEDIA_URL = "/media/"
MEDIA_ROOT = Path(os.environ.get("MEDIA_ROOT", BASE_DIR / "media"))


# Default primary key field type
# https://docs.djangoproject.com/en/stable/ref/settings/#default-auto-field

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# =============================================================================
# Assembly engine settings
# =============================================================================

# One-time code windows (minutes)
ASSEMBLY_CHECKIN_OTP_MINUTES = int(os.environ.get("ASSEMBLY_CHECKIN_OTP_MINUTES", "10"))
ASSEMBLY_VOTING_OTP_MINUTES = int(os.environ.get("ASSEMBLY_VOTING_OTP_MINUTES", "5"))

# Proxy documents
ASSEMBLY_PROXY_MAX_FILE_SIZE = int(os.environ.get("ASSEMBLY_PROXY_MAX_FILE_SIZE", str(5 * 1024 * 1024)))
ASSEMBLY_PROXY_ALLOWED_MIME_TYPES = [
    m.strip()
    for m in os.environ.get(
        "ASSEMBLY_PROXY_ALLOWED_MIME_TYPES",
        "application/pdf,image/jpeg,image/png",
    ).split(",")
    if m.strip()
]


# =============================================================================
# Authentication
# =============================================================================

LOGIN_URL = "/admin/login/"

# Session settings
SESSION_COOKIE_AGE = 60 * 60 * 24 * 7  # 7 days


# Logging
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "INFO",
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": os.environ.get("DJANGO_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
        "apps.assemblies": {
            "handlers": ["console"],
            "level": "DEBUG" if DEBUG else "INFO",
            "propagate": False,
        },
        "apps.tenants": {
            "handlers": ["console"],
            "level": "DEBUG" if DEBUG else "INFO",
            "propagate": False,
        },
        "apps.common": {
            "handlers": ["console"],
            "level": "DEBUG",
            "propagate": False,
        },
    },
}


# =============================================================================
# Django Unfold Admin Theme
# =============================================================================
# https://unfoldadmin.com/docs/

from django.urls import reverse_lazy
from django.utils.translation import gettext_lazy as _

UNFOLD = {
    # Branding
    "SITE_TITLE": "Condo Admin",
    "SITE_HEADER": "Condo",
    "SITE_SUBHEADER": "Assemblies & voting",
    "SITE_URL": "/",
    # UI Options
    "SHOW_HISTORY": True,
    "SHOW_VIEW_ON_SITE": False,
    "SHOW_BACK_BUTTON": True,
    # Environment badge (top right)
    "ENVIRONMENT": "condo.admin_utils.environment_callback",
    # Sidebar Navigation
    # Icons: Material Symbols (https://fonts.google.com/icons)
    "SIDEBAR": {
        "show_search": True,
        "show_all_applications": False,
        "navigation": [
            {
                "title": _("Dashboard"),
                "separator": False,
                "collapsible": False,
                "items": [
                    {
                        "title": _("Overview"),
                        "icon": "home",
                        "link": reverse_lazy("admin:index"),
                    },
                ],
            },
            {
                "title": _("Condominiums"),
                "separator": True,
                "collapsible": True,
                "items": [
                    {
                        "title": _("Condominiums"),
                        "icon": "apartment",
                        "link": reverse_lazy("admin:tenants_condominium_changelist"),
                    },
                    {
                        "title": _("Units"),
                        "icon": "door_front",
                        "link": reverse_lazy("admin:tenants_unit_changelist"),
                    },
                    {
                        "title": _("Memberships"),
                        "icon": "badge",
                        "link": reverse_lazy("admin:tenants_condominiummembership_changelist"),
                    },
                ],
            },
            {
                "title": _("Assemblies"),
                "separator": True,
                "collapsible": True,
                "items": [
                    {
                        "title": _("Assemblies"),
                        "icon": "groups",
                        "link": reverse_lazy("admin:assemblies_assembly_changelist"),
                    },
                    {
                        "title": _("Participants"),
                        "icon": "how_to_reg",
                        "link": reverse_lazy("admin:assemblies_participant_changelist"),
                    },
                    {
                        "title": _("Votes"),
                        "icon": "how_to_vote",
                        "link": reverse_lazy("admin:assemblies_vote_changelist"),
                    },
                    {
                        "title": _("Minutes"),
                        "icon": "description",
                        "link": reverse_lazy("admin:assemblies_assemblyminutes_changelist"),
                    },
                    {
                        "title": _("Audit log"),
                        "icon": "history",
                        "link": reverse_lazy("admin:assemblies_assemblyauditlog_changelist"),
                    },
                ],
            },
            {
                "title": _("Users"),
                "separator": True,
                "collapsible": True,
                "items": [
                    {
                        "title": _("Users"),
                        "icon": "person",
                        "link": reverse_lazy("admin:auth_user_changelist"),
                    },
                ],
            },
        ],
    },
}
