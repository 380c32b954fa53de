"""
Configuration for the Ella Rises portal.

Values come from the environment (a local .env is loaded first). The
PG* variable names take precedence over the older DB_* names.
"""
import os
from datetime import timedelta

from dotenv import load_dotenv
from sqlalchemy.engine import URL

load_dotenv()

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
INSTANCE_DIR = os.path.join(BASE_DIR, 'instance')


def _env(*names, default=None):
    for name in names:
        value = os.environ.get(name)
        if value:
            return value
    return default


def build_database_uri():
    """Resolve the SQLAlchemy database URI from the environment."""
    database_url = os.environ.get('DATABASE_URL')
    if database_url:
        if database_url.startswith('postgres://'):
            # SQLAlchemy only accepts the postgresql:// scheme
            database_url = database_url.replace('postgres://', 'postgresql://', 1)
        return database_url

    host = _env('PGHOST', 'DB_HOST')
    if host:
        query = {'sslmode': 'require'} if os.environ.get('PGSSL') == 'true' else {}
        url = URL.create(
            'postgresql+psycopg2',
            username=_env('PGUSER', 'DB_USER'),
            password=_env('PGPASSWORD', 'DB_PASSWORD'),
            host=host,
            port=int(_env('PGPORT', 'DB_PORT', default='5432')),
            database=_env('PGDATABASE', 'DB_NAME'),
            query=query,
        )
        return url.render_as_string(hide_password=False)

    return f"sqlite:///{os.path.join(INSTANCE_DIR, 'ellarises.db')}"


class Config:
    DEBUG = False
    TESTING = False

    SECRET_KEY = _env('SESSION_SECRET', 'SECRET_KEY', default='dev-session-secret')
    PERMANENT_SESSION_LIFETIME = timedelta(days=1)
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    SQLALCHEMY_DATABASE_URI = build_database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {'pool_pre_ping': True}

    # Users may only review events that started within this many days
    SURVEY_WINDOW_DAYS = int(os.environ.get('SURVEY_WINDOW_DAYS', '30'))

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
    PORT = int(os.environ.get('PORT', '3000'))


class DevelopmentConfig(Config):
    DEBUG = True


class ProductionConfig(Config):
    PREFERRED_URL_SCHEME = 'https'
    SESSION_COOKIE_SECURE = True

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_size': 10,
        'pool_timeout': 30,
        'pool_recycle': 1800,  # Recycle connections after 30 minutes
        'max_overflow': 2,
    }


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'testing'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    WTF_CSRF_ENABLED = False
    LOG_LEVEL = 'WARNING'


CONFIGS = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
}


def get_config(name=None):
    name = name or os.environ.get('APP_ENV') or os.environ.get('FLASK_ENV') or 'production'
    return CONFIGS.get(name.lower(), ProductionConfig)
