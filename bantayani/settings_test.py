import tempfile

from .settings import *  # noqa: F401,F403

DEBUG = False
SECURE_SSL_REDIRECT = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

STORAGES = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
    },
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}

MEDIA_ROOT = tempfile.mkdtemp(prefix='bantayani-media-')

PEST_AI_URL = 'http://ai.test/v1/chat/completions'
PEST_AI_API_KEY = 'test-key'
PEST_AI_MAX_RETRIES = 1
