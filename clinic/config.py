import os

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

DEV_SECRET_KEY = 'dev-access-secret-change-in-production'
DEV_REFRESH_SECRET_KEY = 'dev-refresh-secret-change-in-production'


def _int_env(key, default):
    value = os.environ.get(key)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


class Config:
    ENV_NAME = 'development'
    DEBUG = False
    TESTING = False

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        'DATABASE_URL', 'sqlite:///' + os.path.join(BASE_DIR, 'clinic.sqlite3'))
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Access and refresh tokens are signed with different keys
    SECRET_KEY = os.environ.get('SECRET_KEY', DEV_SECRET_KEY)
    REFRESH_SECRET_KEY = os.environ.get('REFRESH_SECRET_KEY', DEV_REFRESH_SECRET_KEY)
    ACCESS_TOKEN_EXPIRES = _int_env('ACCESS_TOKEN_EXPIRES', 60 * 60)
    REFRESH_TOKEN_EXPIRES = _int_env('REFRESH_TOKEN_EXPIRES', 7 * 24 * 60 * 60)

    BCRYPT_ROUNDS = _int_env('BCRYPT_ROUNDS', 12)
    MIN_PASSWORD_LENGTH = _int_env('MIN_PASSWORD_LENGTH', 8)
    MAX_PASSWORD_LENGTH = _int_env('MAX_PASSWORD_LENGTH', 128)
    MAX_FAILED_LOGIN_ATTEMPTS = _int_env('MAX_FAILED_LOGIN_ATTEMPTS', 5)
    ACCOUNT_LOCKOUT_MINUTES = _int_env('ACCOUNT_LOCKOUT_MINUTES', 30)

    DEFAULT_PAGE_LIMIT = _int_env('DEFAULT_PAGE_LIMIT', 20)
    MAX_PAGE_LIMIT = _int_env('MAX_PAGE_LIMIT', 100)

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    ADMIN_EMAIL = os.environ.get('ADMIN_EMAIL', 'admin@clinic.org')
    ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD', 'admin-change-me')


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')


class TestingConfig(Config):
    ENV_NAME = 'testing'
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    BCRYPT_ROUNDS = 4
    LOG_LEVEL = 'WARNING'


class ProductionConfig(Config):
    ENV_NAME = 'production'


CONFIGS = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}


def get_config(name=None):
    name = name or os.environ.get('APP_ENV', 'development')
    try:
        return CONFIGS[name]
    except KeyError:
        raise RuntimeError(f"Unknown APP_ENV '{name}'. Expected one of: {', '.join(CONFIGS)}")


def validate_config(config):
    """Refuse to run in production with missing or development secrets."""
    if config.get('ENV_NAME') != 'production':
        return
    for key, dev_value in (('SECRET_KEY', DEV_SECRET_KEY),
                           ('REFRESH_SECRET_KEY', DEV_REFRESH_SECRET_KEY)):
        value = config.get(key)
        if not value or value == dev_value:
            raise RuntimeError(f"{key} must be set in production environment")
    if config.get('SECRET_KEY') == config.get('REFRESH_SECRET_KEY'):
        raise RuntimeError("SECRET_KEY and REFRESH_SECRET_KEY must differ")
