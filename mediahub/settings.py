from pathlib import Path
import os
from dotenv import load_dotenv
from celery.schedules import crontab
from django.core.exceptions import ImproperlyConfigured

# -----------------------------------------------------
# Helpers
# -----------------------------------------------------
def env(name: str, default=None, *, required: bool = False):
    val = os.getenv(name, default)
    if required and (val is None or (isinstance(val, str) and val.strip() == "")):
        raise ImproperlyConfigured(f"Missing required environment variable: {name}")
    return val

def env_bool(name: str, default: bool = False) -> bool:
    return str(os.getenv(name, str(default))).lower() in {"1", "true", "yes", "on"}

def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ImproperlyConfigured(f"Environment variable {name} must be an integer, got {raw!r}")

MB = 1024 * 1024

# -----------------------------------------------------
# Paths & basics
# -----------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

DEBUG = env_bool("DEBUG", False)

# In production (DEBUG=False) you must set a strong secret in .env
SECRET_KEY = env("DJANGO_SECRET_KEY", "dev-only-secret-key-change-me", required=not DEBUG)

ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "127.0.0.1,localhost,testserver").split(",") if h.strip()]

# -----------------------------------------------------
# Applications
# -----------------------------------------------------
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Third-party
    "rest_framework",

    # Local
    "posts",
    "mediajobs",
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

ROOT_URLCONF = "mediahub.urls"

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

WSGI_APPLICATION = "mediahub.wsgi.application"

# -----------------------------------------------------
# Database (Postgres if DB_* env vars set, else SQLite)
# -----------------------------------------------------
if os.getenv("DB_HOST"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": env("DB_NAME", "mediahub"),
            "USER": env("DB_USER", "mediahub"),
            "PASSWORD": env("DB_PASSWORD", ""),
            "HOST": env("DB_HOST", "127.0.0.1"),
            "PORT": env("DB_PORT", "5432"),
            "CONN_MAX_AGE": env_int("DB_CONN_MAX_AGE", 60),  # keep-alive
            "OPTIONS": {
                **({"sslmode": os.getenv("DB_SSLMODE")} if os.getenv("DB_SSLMODE") else {})
            },
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

# -----------------------------------------------------
# Internationalization
# -----------------------------------------------------
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# -----------------------------------------------------
# Django REST Framework
# -----------------------------------------------------
REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
        "rest_framework.renderers.BrowsableAPIRenderer" if DEBUG else "rest_framework.renderers.JSONRenderer",
    ],
    "DEFAULT_PARSER_CLASSES": [
        "rest_framework.parsers.JSONParser",
        "rest_framework.parsers.FormParser",
    ],
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
    ],
}

CSRF_TRUSTED_ORIGINS = [
    o.strip() for o in os.getenv("CSRF_TRUSTED_ORIGINS", "").split(",") if o.strip()
]

# -----------------------------------------------------
# Logging
# -----------------------------------------------------
LOG_LEVEL = env("LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s [%(name)s] %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "mediajobs": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "posts": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "celery": {"handlers": ["console"], "level": "INFO", "propagate": False},
    },
}

# -----------------------------------------------------
# Celery / Redis
# -----------------------------------------------------
CELERY_BROKER_URL = env("CELERY_BROKER_URL", "redis://127.0.0.1:6379/0")
CELERY_RESULT_BACKEND = env("CELERY_RESULT_BACKEND", "redis://127.0.0.1:6379/0")
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_ACKS_LATE = True  # redeliver when a worker dies mid-task
CELERY_TASK_TIME_LIMIT = env_int("CELERY_TASK_TIME_LIMIT", 60 * 15)  # seconds
# raises SoftTimeLimitExceeded inside the task first, which is retried like any other failure
CELERY_TASK_SOFT_TIME_LIMIT = env_int("CELERY_TASK_SOFT_TIME_LIMIT", CELERY_TASK_TIME_LIMIT - 60)
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_ACCEPT_CONTENT = ["json"]

CELERY_BEAT_SCHEDULE = {
    "publish-due-drops": {
        "task": "posts.publish_due_drops",
        "schedule": crontab(minute="*/5"),
    },
    "sweep-pending-deletions": {
        "task": "mediajobs.sweep_pending_deletions",
        "schedule": crontab(hour=3, minute=0),
    },
    "link-orphan-jobs": {
        "task": "mediajobs.link_orphan_jobs",
        "schedule": crontab(minute=15),
    },
    "backfill-post-metadata": {
        "task": "mediajobs.backfill_post_metadata",
        "schedule": crontab(minute=45),
    },
    "redispatch-stale-jobs": {
        "task": "mediajobs.redispatch_stale_jobs",
        "schedule": crontab(minute="*/10"),
    },
}

# Shared secret for the cron HTTP endpoints; unset disables the check (local dev).
CRON_SECRET = os.getenv("CRON_SECRET") or None

# -----------------------------------------------------
# S3 / MinIO (env-driven; no hardcoded secrets)
# -----------------------------------------------------
S3_ENDPOINT_URL = os.getenv("S3_ENDPOINT_URL") or "http://127.0.0.1:9000"  # fine for local
S3_PUBLIC_ENDPOINT = os.getenv("S3_PUBLIC_ENDPOINT", S3_ENDPOINT_URL)
S3_REGION = os.getenv("S3_REGION", "us-east-1")
S3_BUCKET = os.getenv("S3_BUCKET", "media-local")
S3_ACCESS_KEY = os.getenv("S3_ACCESS_KEY")          # set in .env for local
S3_SECRET_KEY = os.getenv("S3_SECRET_KEY")          # set in .env for local
S3_PRESIGN_EXPIRE_SECONDS = env_int("S3_PRESIGN_EXPIRE_SECONDS", 900)

# -----------------------------------------------------
# Media pipeline
# -----------------------------------------------------
MEDIA_DEFAULT_TIER = env("MEDIA_DEFAULT_TIER", "free")

# Upload size caps in bytes. 0 means the kind is not available on that tier.
MEDIA_UPLOAD_LIMITS = {
    "free": {"image": 500 * 1024, "panorama360": 0, "video": 10 * MB, "audio": 10 * MB},
    "creator": {"image": 10 * MB, "panorama360": 0, "video": 50 * MB, "audio": 50 * MB},
    "pro": {"image": 50 * MB, "panorama360": 100 * MB, "video": 500 * MB, "audio": 200 * MB},
    "teams": {"image": 50 * MB, "panorama360": 100 * MB, "video": 500 * MB, "audio": 200 * MB},
}

# Maximum playable length in seconds, checked by the worker after probing.
MEDIA_DURATION_LIMITS = {
    "free": {"video": 60, "audio": 60},
    "creator": {"video": 180, "audio": 300},
    "pro": {"video": 600, "audio": 1800},
    "teams": {"video": 600, "audio": 3600},
}

MEDIA_JOB_ATTEMPTS = env_int("MEDIA_JOB_ATTEMPTS", 3)
MEDIA_JOB_BACKOFF_SECONDS = env_int("MEDIA_JOB_BACKOFF_SECONDS", 1)
MEDIA_QUEUE_KEEP_COMPLETED = env_int("MEDIA_QUEUE_KEEP_COMPLETED", 100)
MEDIA_QUEUE_KEEP_FAILED = env_int("MEDIA_QUEUE_KEEP_FAILED", 100)

MEDIA_DELETION_BATCH_SIZE = env_int("MEDIA_DELETION_BATCH_SIZE", 50)
MEDIA_DELETION_GRACE_DAYS = env_int("MEDIA_DELETION_GRACE_DAYS", 7)
MEDIA_STALE_PENDING_MINUTES = env_int("MEDIA_STALE_PENDING_MINUTES", 15)
# processing jobs silent for longer than a task may run are reset or failed by the sweep
MEDIA_STALE_PROCESSING_MINUTES = env_int("MEDIA_STALE_PROCESSING_MINUTES", CELERY_TASK_TIME_LIMIT // 60 + 5)

FFMPEG_PATH = os.getenv("FFMPEG_PATH", "ffmpeg")
FFPROBE_PATH = os.getenv("FFPROBE_PATH", "ffprobe")
