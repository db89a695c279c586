import os, sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from datetime import datetime

import pytest

from app import create_app
from app_models import db
from config import TestingConfig
from persistence import KeyValuePersistence
from sample_data import build_sample_data
from store import EntityStore

NOW = datetime(2024, 6, 15, 12, 0, 0)


class SeededTestingConfig(TestingConfig):
    SEED_SAMPLE_DATA = True


class RelationalTestingConfig(SeededTestingConfig):
    PERSISTENCE_BACKEND = 'relational'


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def persistence():
    return KeyValuePersistence()


@pytest.fixture
def store(persistence):
    return EntityStore(persistence, seed=build_sample_data(NOW)).hydrate()


@pytest.fixture
def app():
    return create_app(SeededTestingConfig)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def relational_app():
    app = create_app(RelationalTestingConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
