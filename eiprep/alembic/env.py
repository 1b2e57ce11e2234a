"""Alembic environment for the assessment schema.

Configured programmatically by ``eiprep.database.session.run_migrations``,
which sets ``script_location`` and a synchronous ``sqlalchemy.url``.
"""
from alembic import context
from sqlalchemy import create_engine, pool

from eiprep.database.base import metadata
from eiprep.database import models  # noqa: F401

config = context.config
target_metadata = metadata


def run_migrations_offline():
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = create_engine(config.get_main_option("sqlalchemy.url"), poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()
    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
