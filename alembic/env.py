from logging.config import fileConfig

from sqlalchemy import engine_from_config
from sqlalchemy import pool

from alembic import context

import os

# this is the Alembic Config object, which provides access to the values
# within the .ini file in use.
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

import logging

# Make sure the project root is on sys.path so `import backoffice` works when
# alembic is invoked from a checkout without installing the package.
import sys
here = os.path.dirname(__file__)
project_root = os.path.abspath(os.path.join(here, ".."))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

env_logger = logging.getLogger("alembic.env")

# The application's engine honours DATABASE_URL and the DB_* settings.
from backoffice.services.database import engine
from sqlmodel import SQLModel

# Import all model modules under backoffice.models so classes register in metadata.
import importlib
import pkgutil

import backoffice.models as models_pkg
for _finder, name, _ispkg in pkgutil.iter_modules(models_pkg.__path__):
    importlib.import_module(f"backoffice.models.{name}")

target_metadata = SQLModel.metadata
env_logger.info("Tables in SQLModel.metadata: %s", list(target_metadata.tables.keys()))


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = config.get_main_option("sqlalchemy.url") or str(engine.url)
    context.configure(url=url, target_metadata=target_metadata, literal_binds=True)

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    connectable = engine if engine is not None else engine_from_config(
        config.get_section(config.config_ini_section), prefix="sqlalchemy.", poolclass=pool.NullPool
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
