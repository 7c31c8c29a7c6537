# food_rescue_project/settings.py

from pathlib import Path
import environ
import os

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# Define ALL environment variables with their types and defaults here.
env = environ.Env(
    # set casting, default value
    DEBUG=(bool, True),
    SECRET_KEY=(str, 'django-insecure-a-default-secret-key-for-dev'),
    ALLOWED_HOSTS=(list, ['localhost', '127.0.0.1', 'testserver']),
    LOG_LEVEL=(str, 'INFO'),

    # CORS for the single-page front end
    CORS_ALLOW_ALL_ORIGINS=(bool, True),
    CORS_ALLOWED_ORIGINS=(list, []),

    # Donation lifecycle
    DONATION_UNIT_WEIGHT_KG=(float, 1.0),
    DONATION_MIN_HOURS_TO_EXPIRY=(float, 0.0),
    DONATION_URGENCY_HIGH_HOURS=(float, 2.0),
    DONATION_URGENCY_NORMAL_HOURS=(float, 6.0),
    DONATION_CAPACITY_WARNING_RATE=(float, 0.9),
    DONATION_CAPACITY_NEAR_LIMIT_RATE=(float, 0.8),
    DONATION_CAPACITY_HARD_CAP=(bool, False),

    # Missions
    VOLUNTEER_MAX_ACTIVE_MISSIONS=(int, 10),
    MISSION_DIVERSION_DETOUR_RATIO=(float, 0.3),
    MISSION_MAX_DIVERSIONS=(int, 2),
    MISSION_USE_GOOGLE_MAPS=(bool, False),

    # Outbound collaborators
    COLLABORATOR_TIMEOUT_SECONDS=(float, 10.0),
    COLLABORATOR_MAX_RETRIES=(int, 2),

    # VAPID
    VAPID_PUBLIC_KEY=(str, ''),
    VAPID_PRIVATE_KEY=(str, ''),
    VAPID_ADMIN_EMAIL=(str, ''),

    # Google Maps API
    GOOGLE_MAPS_API_KEY=(str, ''),
)
environ.Env.read_env(os.path.join(BASE_DIR, '.env'))


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = env('SECRET_KEY')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = env('DEBUG')

ALLOWED_HOSTS = env.list('ALLOWED_HOSTS')

# Application definition
INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    # Third-party apps
    'corsheaders',
    # Local apps
    'rescue',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')
ROOT_URLCONF = 'food_rescue_project.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'food_rescue_project.wsgi.application'

# Database
DATABASES = {
    'default': env.db('DATABASE_URL', default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}

# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# Static files
STATIC_URL = '/static/'
STATIC_ROOT = os.path.join(BASE_DIR, 'staticfiles')

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Tell Django to use the custom User model from the 'rescue' app
AUTH_USER_MODEL = 'rescue.User'

# CORS Settings
CORS_ALLOW_ALL_ORIGINS = env('CORS_ALLOW_ALL_ORIGINS')
CORS_ALLOWED_ORIGINS = env.list('CORS_ALLOWED_ORIGINS')

LOGIN_URL = '/admin/login/'

# Logging
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'loggers': {
        'rescue': {
            'handlers': ['console'],
            'level': env('LOG_LEVEL'),
            'propagate': False,
        },
    },
}

# Donation lifecycle configuration
DONATION_UNIT_WEIGHT_KG = env('DONATION_UNIT_WEIGHT_KG')
DONATION_MIN_HOURS_TO_EXPIRY = env('DONATION_MIN_HOURS_TO_EXPIRY')
DONATION_URGENCY_HIGH_HOURS = env('DONATION_URGENCY_HIGH_HOURS')
DONATION_URGENCY_NORMAL_HOURS = env('DONATION_URGENCY_NORMAL_HOURS')
DONATION_CAPACITY_WARNING_RATE = env('DONATION_CAPACITY_WARNING_RATE')
DONATION_CAPACITY_NEAR_LIMIT_RATE = env('DONATION_CAPACITY_NEAR_LIMIT_RATE')
DONATION_CAPACITY_HARD_CAP = env('DONATION_CAPACITY_HARD_CAP')

VOLUNTEER_MAX_ACTIVE_MISSIONS = env('VOLUNTEER_MAX_ACTIVE_MISSIONS')
MISSION_DIVERSION_DETOUR_RATIO = env('MISSION_DIVERSION_DETOUR_RATIO')
MISSION_MAX_DIVERSIONS = env('MISSION_MAX_DIVERSIONS')
MISSION_USE_GOOGLE_MAPS = env('MISSION_USE_GOOGLE_MAPS')

COLLABORATOR_TIMEOUT_SECONDS = env('COLLABORATOR_TIMEOUT_SECONDS')
COLLABORATOR_MAX_RETRIES = env('COLLABORATOR_MAX_RETRIES')

# WebPush Configuration
WEBPUSH_SETTINGS = {
    "VAPID_PUBLIC_KEY": env('VAPID_PUBLIC_KEY'),
    "VAPID_PRIVATE_KEY": env('VAPID_PRIVATE_KEY'),
    "VAPID_ADMIN_EMAIL": env('VAPID_ADMIN_EMAIL')
}

# Google Maps API Configuration
GOOGLE_MAPS_API_KEY = env('GOOGLE_MAPS_API_KEY')
