import sqlite3
from datetime import datetime

import pytest

import ContractorHub
from db_init import init_db


@pytest.fixture
def db_path(tmp_path):
    return init_db(tmp_path / 'contractor_hub_test.db')


@pytest.fixture
def conn(db_path):
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    yield conn
    conn.close()


@pytest.fixture
def app(db_path):
    ContractorHub.app.config.update(TESTING=True, DATABASE=str(db_path))
    yield ContractorHub.app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def clock(monkeypatch):
    """Pins ContractorHub.utcnow; set ``clock['now']`` to move time."""
    state = {'now': datetime(2024, 3, 4, 9, 0)}
    monkeypatch.setattr(ContractorHub, 'utcnow', lambda: state['now'])
    return state
