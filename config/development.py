"""Development configuration."""
import os

from .base import Config


class DevelopmentConfig(Config):
    """Development configuration class."""
    DEBUG = True
    TESTING = False
    SQLALCHEMY_DATABASE_URI = os.environ.get('DEV_DATABASE_URL') or \
        'sqlite:///smart_attendance_dev.db'
    SQLALCHEMY_ECHO = True

    LOG_LEVEL = 'DEBUG'
