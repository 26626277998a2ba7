"""Alembic environment configuration"""

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlmodel import SQLModel

from update_manager.core.config import get_settings
import update_manager.models  # noqa: F401  register every table

# this is the Alembic Config object
config = context.config

target_metadata = SQLModel.metadata


def get_url():
    """Database URL from application settings"""
    return get_settings().DATABASE_URL


def run_migrations_offline():
    """Run migrations in 'offline' mode"""
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    """Run migrations in 'online' mode"""
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = get_url()
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
