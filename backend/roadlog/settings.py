from pathlib import Path
import os
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent

def _env(name: str, default: str = '') -> str:
    val = os.environ.get(name, default)
    if isinstance(val, str):
        return val.strip().strip('"').strip("'")
    return val


def _env_bool(name: str, default: bool = False) -> bool:
    raw = str(_env(name, str(default))).lower()
    return raw in ('1', 'true', 'yes', 'on')


SECRET_KEY = _env('SECRET_KEY', 'django-insecure-dev-key-change-in-production-roadlog')

DEBUG = _env_bool('DEBUG', True)

ALLOWED_HOSTS = ['*']

INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'rest_framework',
    'corsheaders',
    'fleet',
]

MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'roadlog.urls'

ASGI_APPLICATION = 'roadlog.asgi.application'

# Nothing is persisted locally; trips, logs and accounts live on the remote API.
DATABASES = {}

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# CORS - allow all origins in development
CORS_ALLOW_ALL_ORIGINS = True
CORS_ALLOW_CREDENTIALS = True

# REST Framework
REST_FRAMEWORK = {
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_AUTHENTICATION_CLASSES': [],
    'DEFAULT_PERMISSION_CLASSES': [],
    'UNAUTHENTICATED_USER': None,
}

# Remote ELD API
ELD_API_BASE_URL = _env('ELD_API_BASE_URL', 'http://localhost:8000').rstrip('/')
ELD_API_PREFIX = _env('ELD_API_PREFIX', '/api')
ELD_API_TIMEOUT_SECONDS = float(_env('ELD_API_TIMEOUT_SECONDS', '15'))

# Durable session slot (tokens + user profile). Survives restarts.
ELD_SESSION_CACHE = 'session'
ELD_SESSION_DIR = _env('ELD_SESSION_DIR', str(BASE_DIR / '.session'))

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
    },
    ELD_SESSION_CACHE: {
        'BACKEND': 'django.core.cache.backends.filebased.FileBasedCache',
        'LOCATION': ELD_SESSION_DIR,
        'TIMEOUT': None,
    },
}

# Seconds before a cached collection is considered stale.
ELD_CACHE_STALE_SECONDS = {
    'trips': 5 * 60,
    'trip': 5 * 60,
    'vehicles': 10 * 60,
    'carriers': 10 * 60,
    'duty_statuses': 2 * 60,
    'eld_logs': 2 * 60,
}

# Calendar dates and hour offsets of duty statuses are both taken in this zone.
ELD_LOG_TIMEZONE = _env('ELD_LOG_TIMEZONE', 'UTC')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'loggers': {
        'fleet': {
            'handlers': ['console'],
            'level': _env('FLEET_LOG_LEVEL', 'INFO'),
        },
    },
}
