"""Base configuration shared by every environment."""
import os
from datetime import timedelta


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False

    # JWT Configuration
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or 'jwt-secret-key-change-in-production'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=2)
    JWT_ALGORITHM = 'HS256'

    # CORS
    CORS_ORIGINS = ["http://localhost:*", "http://127.0.0.1:*"]

    # Rate Limiting
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI') or 'memory://'
    RATELIMIT_DEFAULT = "200 per day, 50 per hour"

    # Face matching
    FACE_MATCH_THRESHOLD = 0.6
    DESCRIPTOR_LENGTH = None  # None accepts any fixed length
    FACE_DATA_SECRET = os.environ.get('FACE_DATA_SECRET') or 'face-data-secret-change-in-production'

    # Liveness
    LIVENESS_THRESHOLD = 0.4
    LIVENESS_VARIATION_FLOOR = 0.1
    BLINK_THRESHOLD = 0.5
    LIVENESS_REQUIRED = True

    # Geofence
    DEFAULT_GEOFENCE_RADIUS = 50  # meters

    # QR session tokens
    QR_CODE_DEFAULT_EXPIRY = 300  # seconds
    QR_CODE_MAX_EXPIRY = 3600

    # Attendance
    ATTENDANCE_QUORUM = 2
    # Missing geofence or QR session marks the check "not applicable" instead of failing the request
    OPTIONAL_UNCONFIGURED_CHECKS = True

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FILE = 'logs/app.log'
