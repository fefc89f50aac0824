"""Alembic environment for the ledger and bias tables.

The database URL comes from ``CASINOBOT_DATABASE__URL`` through the project
settings, never from alembic.ini. Batch mode is on so SQLite can alter tables.
"""

from __future__ import annotations

import asyncio
from logging.config import fileConfig

from alembic import context

from casinobot.core.config import get_settings
from casinobot.infrastructure.database import models  # noqa: F401
from casinobot.infrastructure.database.base import Base
from casinobot.infrastructure.database.session import get_engine

if context.config.config_file_name is not None:
    fileConfig(context.config.config_file_name)


def _configure(**kwargs) -> None:
    context.configure(target_metadata=Base.metadata, render_as_batch=True, **kwargs)
    with context.begin_transaction():
        context.run_migrations()


async def _run_online() -> None:
    engine = get_engine()
    async with engine.connect() as connection:
        await connection.run_sync(lambda sync_conn: _configure(connection=sync_conn))
    await engine.dispose()


if context.is_offline_mode():
    _configure(url=get_settings().database_url, literal_binds=True)
else:
    asyncio.run(_run_online())
