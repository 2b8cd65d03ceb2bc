"""Alembic environment for the sync engine schema.

Every table lives on one Base.metadata. The URL comes from DATABASE_URL in
settings unless overridden on the command line, and any async driver in it
is swapped for the sync one:
  alembic upgrade head
  alembic -x url=sqlite:///./unified.db upgrade head
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool
from sqlalchemy.engine import make_url

import src.unified.models  # noqa: F401  (registers every table on Base.metadata)
from src.unified.config import get_settings
from src.unified.core.database import Base

ASYNC_DRIVERS = frozenset({"asyncpg", "aiosqlite"})

if context.config.config_file_name is not None:
    fileConfig(context.config.config_file_name)


def migration_url() -> str:
    raw = context.get_x_argument(as_dictionary=True).get("url") or get_settings().DATABASE_URL
    url = make_url(raw)
    if url.get_driver_name() in ASYNC_DRIVERS:
        url = url.set(drivername=url.get_backend_name())
    return url.render_as_string(hide_password=False)


def _configure(**options) -> None:
    context.configure(target_metadata=Base.metadata, compare_type=True, **options)
    with context.begin_transaction():
        context.run_migrations()


def run_offline(url: str) -> None:
    """Emit SQL to stdout instead of connecting."""
    _configure(url=url, literal_binds=True, dialect_opts={"paramstyle": "named"})


def run_online(url: str) -> None:
    engine = create_engine(url, poolclass=pool.NullPool)
    with engine.connect() as connection:
        # SQLite cannot ALTER most constraints in place
        _configure(connection=connection, render_as_batch=connection.dialect.name == "sqlite")


if context.is_offline_mode():
    run_offline(migration_url())
else:
    run_online(migration_url())
