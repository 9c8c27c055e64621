import os

basedir = os.path.abspath(os.path.dirname(__file__))


def _env_bool(name, default=False):
    raw = os.environ.get(name)
    if raw is None:
        return default
    return str(raw).strip().lower() in {'1', 'true', 'yes', 'on'}


def _env_int(name, default):
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def _normalize_database_url(raw_url):
    if not raw_url:
        return raw_url
    if raw_url.startswith('postgres://'):
        return raw_url.replace('postgres://', 'postgresql://', 1)
    return raw_url


class BaseConfig:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-prod')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    IDENTITY_TOKEN_SECRET = os.environ.get('IDENTITY_TOKEN_SECRET', '')
    IDENTITY_TOKEN_AUDIENCE = os.environ.get('IDENTITY_TOKEN_AUDIENCE', '')
    CORS_ALLOWED_ORIGINS = os.environ.get('CORS_ALLOWED_ORIGINS', '*')
    SOCKETIO_ASYNC_MODE = os.environ.get('SOCKETIO_ASYNC_MODE', 'threading')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Ladder rules
    CHALLENGE_DEADLINE_DAYS = _env_int('CHALLENGE_DEADLINE_DAYS', 21)
    UNPLAYED_GRACE_HOURS = _env_int('UNPLAYED_GRACE_HOURS', 24)
    PENDING_REMINDER_DAYS = _env_int('PENDING_REMINDER_DAYS', 7)
    FINAL_WEEK_REMINDER_DAYS = _env_int('FINAL_WEEK_REMINDER_DAYS', 14)
    PARTICIPATION_POINTS_CAP = _env_int('PARTICIPATION_POINTS_CAP', 3)
    SUSPICIOUS_GAME_SCORE = _env_int('SUSPICIOUS_GAME_SCORE', 20)

    # Background expiry sweep
    EXPIRY_SWEEP_ENABLED = _env_bool('EXPIRY_SWEEP_ENABLED', True)
    EXPIRY_SWEEP_INTERVAL_SECONDS = _env_int('EXPIRY_SWEEP_INTERVAL_SECONDS', 60)

    # Notification delivery
    NOTIFICATION_WEBHOOK_URL = os.environ.get('NOTIFICATION_WEBHOOK_URL', '')
    NOTIFICATION_WEBHOOK_TIMEOUT = _env_int('NOTIFICATION_WEBHOOK_TIMEOUT', 10)


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')
    SQLALCHEMY_DATABASE_URI = _normalize_database_url(
        os.environ.get(
            'DATABASE_URL',
            'sqlite:///' + os.path.join(basedir, '..', 'squash_ladder_dev.db')
        )
    )


class TestingConfig(BaseConfig):
    TESTING = True
    SECRET_KEY = 'testing-secret-key-long-enough-for-hs256'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    EXPIRY_SWEEP_ENABLED = False
    NOTIFICATION_WEBHOOK_URL = ''


class ProductionConfig(BaseConfig):
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = _normalize_database_url(os.environ.get('DATABASE_URL'))


config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}
