# QR Guidance Attendance Dashboard Configuration

import os
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# Base directory
BASE_DIR = Path(__file__).parent.absolute()


def _env_flag(name, default='false'):
    return os.environ.get(name, default).lower() in ['true', 'on', '1']


class Config:
    """Base configuration class"""

    # Flask Configuration
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'guidance-dashboard-secret-key'
    MAX_CONTENT_LENGTH = 1 * 1024 * 1024  # scan and enrollment payloads are small

    # Storage Configuration
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or str(BASE_DIR / 'database' / 'attendance.db')
    ROSTER_DIR = os.environ.get('ROSTER_DIR') or str(BASE_DIR / 'student')
    EXPORTS_FOLDER = os.environ.get('EXPORTS_FOLDER') or str(BASE_DIR / 'exports')

    # School Configuration
    SCHOOL_NAME = os.environ.get('SCHOOL_NAME') or 'KNHS'
    TIMEZONE = os.environ.get('TIMEZONE') or 'Asia/Manila'
    ON_TIME_CUTOFF_MINUTES = int(os.environ.get('ON_TIME_CUTOFF_MINUTES') or 420)  # 07:00

    # Shared admin password (empty leaves protected endpoints open)
    API_PASSWORD = os.environ.get('API_PASSWORD') or ''

    # QR Code Configuration
    QR_CODE_SIZE = 10
    QR_CODE_BORDER = 4

    # SMS Configuration (Twilio)
    TWILIO_ACCOUNT_SID = os.environ.get('TWILIO_ACCOUNT_SID') or ''
    TWILIO_AUTH_TOKEN = os.environ.get('TWILIO_AUTH_TOKEN') or ''
    TWILIO_PHONE_NUMBER = os.environ.get('TWILIO_PHONE_NUMBER') or ''

    # Email Configuration (for notifications)
    MAIL_SERVER = os.environ.get('MAIL_SERVER') or 'smtp.gmail.com'
    MAIL_PORT = int(os.environ.get('MAIL_PORT') or 587)
    MAIL_USE_TLS = _env_flag('MAIL_USE_TLS', 'true')
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME') or ''
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD') or ''
    MAIL_DEFAULT_SENDER = os.environ.get('MAIL_DEFAULT_SENDER') or ''

    # Notification Configuration
    NOTIFICATIONS_ENABLED = _env_flag('NOTIFICATIONS_ENABLED', 'true')

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_FILE = os.environ.get('LOG_FILE') or str(BASE_DIR / 'logs' / 'attendance.log')
    LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT = 5

    DEBUG = _env_flag('DEBUG')
    TESTING = False

    @classmethod
    def init_app(cls, app):
        """Initialize application configuration"""
        for directory in (Path(app.config['EXPORTS_FOLDER']), Path(app.config['LOG_FILE']).parent):
            directory.mkdir(parents=True, exist_ok=True)


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False

    DATABASE_PATH = os.environ.get('DATABASE_PATH') or str(BASE_DIR / 'database' / 'attendance_dev.db')

    # More verbose logging
    LOG_LEVEL = 'DEBUG'


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = True

    # Tests point this at a temporary file; background threads need a shared database
    DATABASE_PATH = str(BASE_DIR / 'database' / 'attendance_test.db')
    API_PASSWORD = ''

    # Never reach Twilio or SMTP from tests
    NOTIFICATIONS_ENABLED = False
    TWILIO_ACCOUNT_SID = ''
    TWILIO_AUTH_TOKEN = ''
    MAIL_USERNAME = ''
    MAIL_PASSWORD = ''


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    DATABASE_PATH = os.environ.get('DATABASE_PATH') or str(BASE_DIR / 'database' / 'attendance_prod.db')

    # Production logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'WARNING'

    @classmethod
    def init_app(cls, app):
        Config.init_app(app)

        # Setup file logging
        if not app.debug:
            file_handler = RotatingFileHandler(
                app.config['LOG_FILE'],
                maxBytes=cls.LOG_MAX_BYTES,
                backupCount=cls.LOG_BACKUP_COUNT
            )
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
            ))
            file_handler.setLevel(logging.INFO)
            app.logger.addHandler(file_handler)
            logging.getLogger('guidance_dashboard').addHandler(file_handler)

            app.logger.setLevel(logging.INFO)
            app.logger.info('Guidance Attendance Dashboard startup')


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


# Environment-specific configurations
def get_config(config_name=None):
    """Get configuration based on environment variable"""
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'default')
    return config.get(config_name, DevelopmentConfig)


# Validation functions
def validate_config(settings):
    """
    Validate configuration settings.

    Args:
        settings (Mapping): Flask app.config or any mapping of setting names

    Returns:
        list: Error messages, empty when the configuration is usable
    """
    errors = []

    try:
        ZoneInfo(settings['TIMEZONE'])
    except (ZoneInfoNotFoundError, ValueError):
        errors.append(f"Unknown TIMEZONE: {settings['TIMEZONE']}")

    cutoff = settings['ON_TIME_CUTOFF_MINUTES']
    if not 0 <= cutoff < 24 * 60:
        errors.append(f"ON_TIME_CUTOFF_MINUTES must be between 0 and 1439, got {cutoff}")

    # Email needs a complete account when a username is given
    if settings['MAIL_USERNAME'] and not settings['MAIL_PASSWORD']:
        errors.append("MAIL_PASSWORD is required when MAIL_USERNAME is set")

    return errors
