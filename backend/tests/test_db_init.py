"""
Tests pour l'initialisation de la base (schéma, amorçage, exécution unique).
"""
import threading
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from noslimites import db_init
from noslimites.models import LimitCategory
from noslimites.models.db import UnsupportedDatabase, dialect_insert


@pytest.fixture
def fresh_engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    db_init.reset_initialization_state()
    yield engine
    db_init.reset_initialization_state()
    engine.dispose()


def test_initialization_creates_schema_and_seed(fresh_engine):
    """Test que l'initialisation crée les tables et le catalogue."""
    factory = sessionmaker(bind=fresh_engine)
    assert db_init.ensure_database_initialized(fresh_engine, factory) is True

    tables = set(inspect(fresh_engine).get_table_names())
    assert {"users", "relationships", "user_limits", "limits", "notifications"} <= tables
    with factory() as session:
        assert session.query(LimitCategory).count() == 5


def test_initialization_runs_once(fresh_engine):
    """Test que des appels concurrents n'initialisent la base qu'une fois."""
    factory = sessionmaker(bind=fresh_engine)
    results = []

    def worker():
        results.append(db_init.ensure_database_initialized(fresh_engine, factory))

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 1
    assert results.count(False) == 4
    with factory() as session:
        assert session.query(LimitCategory).count() == 5


def _fake_bind(name):
    return SimpleNamespace(dialect=SimpleNamespace(name=name))


def test_unsupported_dialect_rejected_at_startup():
    """Test qu'une base sans ON CONFLICT est refusée dès l'initialisation."""
    db_init.reset_initialization_state()
    with pytest.raises(UnsupportedDatabase):
        db_init.ensure_database_initialized(_fake_bind("mysql"), None)
    db_init.reset_initialization_state()


def test_dialect_insert_requires_supported_dialect():
    """Test que l'insertion avec ON CONFLICT refuse les dialectes non pris en charge."""
    session = SimpleNamespace(get_bind=lambda: _fake_bind("mssql"))
    with pytest.raises(UnsupportedDatabase):
        dialect_insert(session)
    postgres = SimpleNamespace(get_bind=lambda: _fake_bind("postgresql"))
    assert dialect_insert(postgres).__module__.startswith("sqlalchemy.dialects.postgresql")
