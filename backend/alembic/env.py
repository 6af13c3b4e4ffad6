"""Alembic environment for the fitledger document table."""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from fitledger.config import settings
from fitledger.db.base import Base
import fitledger.models  # noqa: F401 - registers StoredDocument on Base.metadata

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)
# Migrations run on the default sync driver (+asyncpg dropped from the URL)
config.set_main_option("sqlalchemy.url", settings.sync_database_url)

target_metadata = Base.metadata

# Autogenerate also diffs column types
MIGRATION_OPTIONS = {"target_metadata": target_metadata, "compare_type": True}


def run_migrations_offline() -> None:
    """Emit SQL for the document table without a database connection."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **MIGRATION_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        context.configure(connection=connection, **MIGRATION_OPTIONS)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
