"""Transaction boundary shared by the ledger and bias services."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)


class UnitOfWork:
    """Opens one session per block; commits on success, rolls back on any error."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except (OperationalError, InterfaceError) as exc:
                await session.rollback()
                logger.error("Store transaction failed: %s", exc)
                raise StoreUnavailableError(str(exc)) from exc
            except Exception:
                await session.rollback()
                raise
