"""Shared fixtures: an in-memory SQLite database with SAVEPOINT support."""

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session

from paranoid_toolkit.config import set_config
from paranoid_toolkit.soft_delete import ParanoidService, get_registry

from .models import Base


@pytest.fixture
def engine():
    """Create an in-memory SQLite engine with the test schema."""
    engine = create_engine("sqlite://")

    # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    """Create a session for testing."""
    session = Session(engine, expire_on_commit=False)
    yield session
    session.close()


@pytest.fixture
def service(db_session):
    return ParanoidService(db_session)


@pytest.fixture
def hooks():
    """The global hook registry, emptied after each test."""
    registry = get_registry().hooks
    yield registry
    registry.clear()


@pytest.fixture(autouse=True)
def reset_config():
    yield
    set_config(None)
