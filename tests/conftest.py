"""Fixtures providing in-memory SQLite sessions for the test suite."""

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session

from softdelete_toolkit.config import reset_config

from .models import Base, Document, document_observer


@pytest.fixture
def engine():
    """In-memory SQLite engine with working SAVEPOINT support."""
    engine = create_engine("sqlite://")

    # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy
    # emit BEGIN itself.
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
    """Create a session bound to the in-memory database."""
    session = Session(engine)
    yield session
    session.close()


@pytest.fixture(autouse=True)
def clean_state():
    """Reset hook recordings and global configuration between tests."""
    Document.events.clear()
    document_observer.events.clear()
    reset_config()
    yield
    reset_config()
