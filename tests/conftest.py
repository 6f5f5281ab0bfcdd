import importlib
import os
from pathlib import Path

import pytest
from fastapi.testclient import TestClient


def _setup_app(database_url: str):
    os.environ["DATABASE_URL"] = database_url
    os.environ["SECRET_KEY"] = "test-secret"

    import app.posgate.core.config as config
    import app.posgate.db.session as session
    import app.main as main

    importlib.reload(config)
    importlib.reload(session)
    importlib.reload(main)

    session.init_db()
    return main.create_app(), session


@pytest.fixture()
def database(tmp_path: Path):
    db_path = tmp_path / "test.db"
    app, session = _setup_app(f"sqlite+pysqlite:///{db_path}")
    yield app, session
    session.engine.dispose()


@pytest.fixture()
def client(database):
    app, _session = database
    with TestClient(app) as client:
        yield client


@pytest.fixture()
def session_factory(database):
    _app, session = database
    return session.SessionLocal


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()
