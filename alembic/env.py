from __future__ import annotations

import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool

# Make src/ importable when alembic runs from the project root
SRC = Path(__file__).resolve().parents[1] / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from config import get_database_url, load_env_file  # type: ignore  # noqa: E402
from db.base import Base  # type: ignore  # noqa: E402
from db.poco import token  # noqa: E402,F401  # registers the tokens table

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url() -> str:
    """``alembic -x db_url=...`` wins over DATABASE_URL / DB_* settings."""
    override = context.get_x_argument(as_dictionary=True).get("db_url")
    if override:
        return override
    load_env_file()
    url = get_database_url()
    if not url:
        raise RuntimeError("Database URL not configured. Set DATABASE_URL or DB_* in resources/.env")
    return url


def _configure_kwargs(url: str) -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "compare_server_default": True,
        # SQLite needs table rebuilds for ALTERs
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    url = get_url()
    context.configure(url=url, literal_binds=True, **_configure_kwargs(url))

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = get_url()
    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = url

    connectable = engine_from_config(configuration, prefix="sqlalchemy.", poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_kwargs(url))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
