"""
Configuration for SchoolFee Ledger
"""
import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

BASE_DIR = os.path.abspath(os.path.dirname(__file__))
INSTANCE_DIR = os.path.join(BASE_DIR, 'instance')


def _database_url(default):
    database_url = os.environ.get('DATABASE_URL', default)
    if database_url and database_url.startswith('postgres://'):
        database_url = database_url.replace('postgres://', 'postgresql://', 1)
    return database_url


def _flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    # Flask
    DEBUG = False
    TESTING = False
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key')

    # Storage
    PERSISTENCE_BACKEND = os.environ.get('PERSISTENCE_BACKEND', 'keyvalue')  # keyvalue or relational
    DATA_FILE = os.environ.get('DATA_FILE', os.path.join(INSTANCE_DIR, 'ledger_store.json'))
    SQLALCHEMY_DATABASE_URI = _database_url(
        'sqlite:///' + os.path.join(INSTANCE_DIR, 'ledger.db'))
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SEED_SAMPLE_DATA = _flag('SEED_SAMPLE_DATA', True)

    # Ledger
    MONTHLY_INCOME_TARGET = float(os.environ.get('MONTHLY_INCOME_TARGET', 50000))
    DEFAULT_LOGGED_USER = os.environ.get('DEFAULT_LOGGED_USER', 'Current User')

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    @staticmethod
    def init_app(app):
        if app.config['PERSISTENCE_BACKEND'] == 'keyvalue' and app.config.get('DATA_FILE'):
            os.makedirs(os.path.dirname(app.config['DATA_FILE']), exist_ok=True)
        uri = app.config.get('SQLALCHEMY_DATABASE_URI') or ''
        if uri.startswith('sqlite:///'):
            os.makedirs(os.path.dirname(uri[len('sqlite:///'):]) or '.', exist_ok=True)


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')


class TestingConfig(Config):
    TESTING = True
    PERSISTENCE_BACKEND = 'keyvalue'
    DATA_FILE = None  # Memory only
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SEED_SAMPLE_DATA = False
    MONTHLY_INCOME_TARGET = 50000.0
    DEFAULT_LOGGED_USER = 'Current User'
    LOG_LEVEL = 'WARNING'


class ProductionConfig(Config):
    PREFERRED_URL_SCHEME = 'https'

    # Database
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 1800,  # Recycle connections after 30 minutes
    }

    @staticmethod
    def init_app(app):
        Config.init_app(app)
        if not os.environ.get('SECRET_KEY'):
            app.config['SECRET_KEY'] = os.urandom(24)


config_by_name = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig,
}
