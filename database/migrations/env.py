import os
import sys
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..", "backend"))
sys.path.append(BACKEND_DIR)

import timetable_ops.models  # noqa: E402,F401
from timetable_ops.core.config import get_settings  # noqa: E402
from timetable_ops.db.base import Base  # noqa: E402
from timetable_ops.db.session import normalize_database_url, tracking_database_url  # noqa: E402

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def resolve_database_url() -> str:
    """Pick the store to migrate.

    ``alembic -x store=operations upgrade head`` targets the bulk-operation
    tracking database when it lives apart from the schedule database.
    """
    settings = get_settings()
    schedule_url = os.getenv("DATABASE_URL") or settings.database_url
    if context.get_x_argument(as_dictionary=True).get("store") == "operations":
        operations_url = os.getenv("OPERATIONS_DATABASE_URL") or settings.operations_database_url
        return tracking_database_url(schedule_url, operations_url) or normalize_database_url(schedule_url)
    return normalize_database_url(schedule_url)


# configparser treats "%" as interpolation.
config.set_main_option("sqlalchemy.url", resolve_database_url().replace("%", "%%"))
target_metadata = Base.metadata


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            # SQLite cannot ALTER most columns in place.
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
