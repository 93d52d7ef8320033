from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from timetable_ops.core.exceptions import ConfigurationError


def normalize_database_url(database_url: str) -> str:
    url = database_url.strip()

    # Normalize bare Postgres URLs to the psycopg (v3) dialect.
    if url.startswith("postgresql://"):
        url = "postgresql+psycopg://" + url.removeprefix("postgresql://")
    elif url.startswith("postgres://"):
        url = "postgresql+psycopg://" + url.removeprefix("postgres://")
    return url


def build_engine(database_url: str, **engine_kwargs) -> Engine:
    url = normalize_database_url(database_url)

    is_sqlite = make_url(url).get_backend_name() == "sqlite"
    if is_sqlite:
        connect_args = dict(engine_kwargs.pop("connect_args", {}))
        connect_args.setdefault("check_same_thread", False)
        engine = create_engine(url, connect_args=connect_args, **engine_kwargs)
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    engine_kwargs.setdefault("pool_pre_ping", True)
    return create_engine(url, **engine_kwargs)


def tracking_database_url(database_url: str, operations_database_url: str | None = None) -> str | None:
    """Return the URL of a separate operation-tracking store, or None to share.

    SQLite admits one writer at a time and a bulk operation holds the schedule
    write lock until it commits, so SQLite schedule stores always get a tracking
    database of their own. Without an explicit URL it sits next to the schedule
    file as ``<name>.operations<suffix>``.
    """
    schedule = make_url(normalize_database_url(database_url))
    is_sqlite = schedule.get_backend_name() == "sqlite"
    on_disk = is_sqlite and schedule.database not in (None, "", ":memory:")

    if operations_database_url:
        tracking = make_url(normalize_database_url(operations_database_url))
        if on_disk and tracking.get_backend_name() == "sqlite" and _same_file(schedule.database, tracking.database):
            raise ConfigurationError(
                "OPERATIONS_DATABASE_URL must not point at the SQLite schedule database; "
                "SQLite allows only one writer while a bulk operation runs"
            )
        return normalize_database_url(operations_database_url)

    if not is_sqlite:
        return None
    if not on_disk:
        # Every in-memory engine is a database of its own.
        return schedule.render_as_string(hide_password=False)

    path = Path(schedule.database)
    tracking_path = path.with_name(f"{path.stem}.operations{path.suffix or '.db'}")
    return schedule.set(database=str(tracking_path)).render_as_string(hide_password=False)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def _same_file(first: str | None, second: str | None) -> bool:
    if not first or not second:
        return False
    return Path(first).resolve() == Path(second).resolve()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
