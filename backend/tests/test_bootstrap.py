import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from timetable_ops.db import bootstrap


def _raise_error(message: str):
    raise RuntimeError(message)


def _empty_engine():
    return create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


def test_runtime_schema_bootstrap_raises_on_validation_failure(monkeypatch):
    monkeypatch.setattr(bootstrap.Base.metadata, "create_all", lambda bind: None)
    monkeypatch.setattr(
        bootstrap,
        "_assert_required_columns",
        lambda engine: _raise_error("missing required schema"),
    )

    with pytest.raises(RuntimeError, match="Runtime schema bootstrap failed"):
        bootstrap.ensure_runtime_schema(_empty_engine(), create_missing=True)


def test_runtime_schema_bootstrap_creates_missing_tables():
    engine = _empty_engine()

    bootstrap.ensure_runtime_schema(engine, create_missing=True)
    bootstrap.ensure_runtime_schema(engine)

    engine.dispose()


def test_runtime_schema_bootstrap_refuses_empty_database():
    engine = _empty_engine()

    with pytest.raises(RuntimeError, match="Runtime schema bootstrap failed") as excinfo:
        bootstrap.ensure_runtime_schema(engine)
    assert "Missing required tables" in str(excinfo.value.__cause__)

    engine.dispose()
