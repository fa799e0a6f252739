"""Alembic migration environment for the SQLite study workspace database."""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from studyspace.config import get_settings
from studyspace.db import models  # noqa: F401 - registers the tables on Base.metadata
from studyspace.db.base import Base

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

# Alembic runs synchronously: sqlite+aiosqlite:// becomes sqlite://
DATABASE_URL = get_settings().database_url_sync

# SQLite cannot ALTER most things in place; batch mode rebuilds the table
MIGRATION_OPTIONS = {"target_metadata": target_metadata, "render_as_batch": True}


def run_migrations_offline() -> None:
    """Emit the migration SQL to stdout without connecting."""
    context.configure(
        url=DATABASE_URL,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **MIGRATION_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations against the configured database file."""
    engine = create_engine(DATABASE_URL, poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(connection=connection, **MIGRATION_OPTIONS)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
