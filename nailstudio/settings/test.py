"""
Settings used by the pytest suite: in-memory SQLite, no brute-force lockout,
a fixed slot grid that tests can rely on.
"""
import os

os.environ.setdefault('SECRET_KEY', 'test-secret-key-not-for-production')

from .base import *  # noqa: E402

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

AXES_ENABLED = False

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
    'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'},
}

SLOT_GRID = ['08:00', '09:00', '09:30', '10:00', '10:30', '13:00', '15:00', '15:30', '19:00']
BOOKING_ID_PREFIX = 'GN'
PENDING_FORM_RELEASE_HOURS = 2
