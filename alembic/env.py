"""
env.py — Alembic environment for the CPQ activity service

The database URL comes from cpq.config (DATABASE_URL / .env) unless the
caller passes one explicitly: `alembic -x db_url=postgresql://... upgrade head`.
Target metadata is cpq.models.Base, which registers teams, users,
components, activity_logs and bulk_operations.

Business Rules:
- One transaction per migration run
- SQLite (local dev) uses batch mode so ALTERs work
- bulk_operations stays a real table: markers must be visible from every
  pooled connection

Called by: alembic CLI
Depends on: cpq.config (get_settings), cpq.models (Base)
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from cpq.config import get_settings
from cpq.models import Base

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    return context.get_x_argument(as_dictionary=True).get("db_url") or get_settings().database_url


def _configure_kwargs(url: str) -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting."""
    url = _database_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = _database_url()
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = url
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_kwargs(url))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
