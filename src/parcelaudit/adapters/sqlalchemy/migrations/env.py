"""Alembic environment: migrate the parcelaudit tables."""

from __future__ import annotations

from logging import getLogger
from typing import Any

from alembic import context
from sqlalchemy import create_engine, pool

from parcelaudit.adapters.sqlalchemy.mappings import mapper_registry, start_mappers
from parcelaudit.config import get_database_config

config = context.config
log = getLogger("alembic.env")

start_mappers()
target_metadata = mapper_registry.metadata

# batch mode lets sqlite alter tables through copy-and-move
_OPTIONS: dict[str, Any] = {
    "target_metadata": target_metadata,
    "render_as_batch": True,
    "compare_type": True,
}


def _database_url() -> str:
    return config.get_main_option("sqlalchemy.url") or get_database_config().uri


def _run(**options: Any) -> None:
    context.configure(**_OPTIONS, **options)
    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    log.info("Rendering migrations as SQL")
    _run(url=_database_url(), literal_binds=True)
elif (connection := config.attributes.get("connection")) is not None:
    _run(connection=connection)
else:
    engine = create_engine(_database_url(), poolclass=pool.NullPool, future=True)
    try:
        with engine.connect() as new_connection:
            _run(connection=new_connection)
    finally:
        engine.dispose()
