"""Django settings for reposync.

Settings are 12-factor compliant and pull configuration from environment variables. Defaults
are suitable for local development and unit tests only.
"""

from __future__ import annotations

import os
from pathlib import Path

import environ

BASE_DIR = Path(__file__).resolve().parent.parent.parent

env = environ.Env(
    DEBUG=(bool, False),
    SECRET_KEY=(str, "unsafe-secret-key"),
    ALLOWED_HOSTS=(list[str], ["*"]),
    DATABASE_URL=(str, f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
    REDIS_URL=(str, ""),
    LOG_LEVEL=(str, "INFO"),
    PROVISIONER=(str, "docker"),
    WORKSPACE_EXECUTOR=(str, "container"),
    HOSTING_PROVIDER=(str, "github"),
    WORKSPACE_IMAGE=(str, "reposync/workspace:latest"),
    WORKSPACE_DIR=(str, "/workspace"),
    IMPORT_TMP_DIR=(str, "/tmp/github-import"),
    GITHUB_API_URL=(str, "https://api.github.com"),
    GITHUB_HOST=(str, "github.com"),
    GITHUB_TIMEOUT=(float, 30.0),
    WORKSPACE_LEASE_TIMEOUT=(int, 900),
)

environ.Env.read_env(
    env_file=os.environ.get("REPOSYNC_ENV_FILE", BASE_DIR / ".env"), recurse=False
)

SECRET_KEY = env("SECRET_KEY")
DEBUG = env("DEBUG")
ALLOWED_HOSTS = env("ALLOWED_HOSTS")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "drf_spectacular",
    "reposync.integrations",
    "reposync.sync",
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

ROOT_URLCONF = "reposync.config.urls"

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
            ]
        },
    }
]

ASGI_APPLICATION = "reposync.config.asgi.application"

DATABASES = {
    "default": env.db(),
}

# Workspace leases are only exclusive across processes with a shared cache such as Redis.
REDIS_URL = env("REDIS_URL")
if REDIS_URL:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.redis.RedisCache",
            "LOCATION": REDIS_URL,
        }
    }
else:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "reposync",
        }
    }

AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
    },
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
    "DEFAULT_PARSER_CLASSES": [
        "rest_framework.parsers.JSONParser",
    ],
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
}

if env.bool("UNSAFE_DISABLE_AUTH", default=False):
    REST_FRAMEWORK["DEFAULT_AUTHENTICATION_CLASSES"] = [
        "rest_framework.authentication.BasicAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ]
    REST_FRAMEWORK["DEFAULT_PERMISSION_CLASSES"] = [
        "rest_framework.permissions.AllowAny",
    ]

SPECTACULAR_SETTINGS = {
    "TITLE": "reposync API",
    "VERSION": "0.1.0",
    "SERVE_INCLUDE_SCHEMA": False,
}

LOG_LEVEL = env("LOG_LEVEL")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "structured": {
            "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "structured",
        }
    },
    "root": {
        "handlers": ["console"],
        "level": LOG_LEVEL,
    },
}

PROVISIONER = env("PROVISIONER")
WORKSPACE_EXECUTOR = env("WORKSPACE_EXECUTOR")
HOSTING_PROVIDER = env("HOSTING_PROVIDER")
WORKSPACE_IMAGE = env("WORKSPACE_IMAGE")
WORKSPACE_DIR = env("WORKSPACE_DIR")
IMPORT_TMP_DIR = env("IMPORT_TMP_DIR")
GITHUB_API_URL = env("GITHUB_API_URL")
GITHUB_HOST = env("GITHUB_HOST")
GITHUB_TIMEOUT = env("GITHUB_TIMEOUT")
WORKSPACE_LEASE_TIMEOUT = env("WORKSPACE_LEASE_TIMEOUT")
