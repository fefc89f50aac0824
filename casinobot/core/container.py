"""Dependency container for wiring core services."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from casinobot.core.config import Settings, get_settings
from casinobot.core.logging_config import configure_logging
from casinobot.domain.blackjack import BlackjackFlow, BlackjackSessionStore
from casinobot.domain.common.unit_of_work import UnitOfWork
from casinobot.domain.game_bias import GameBiasService
from casinobot.domain.wallets import LedgerService
from casinobot.infrastructure.database.session import build_engine, build_session_factory, init_db

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ApplicationContainer:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    ledger: LedgerService
    bias: GameBiasService
    sessions: BlackjackSessionStore
    blackjack: BlackjackFlow
    _started: bool = field(default=False, repr=False)

    @classmethod
    def build(cls, settings: Optional[Settings] = None, *, engine: Optional[AsyncEngine] = None) -> "ApplicationContainer":
        settings = settings or get_settings()
        engine = engine or build_engine(settings.database, debug=settings.debug)
        session_factory = build_session_factory(engine)
        uow = UnitOfWork(session_factory)

        ledger = LedgerService(uow, settings=settings.ledger)
        bias = GameBiasService(uow, settings=settings.bias)
        sessions = BlackjackSessionStore(
            settings.blackjack.session_ttl_seconds,
            sweep_interval=settings.blackjack.sweep_interval_seconds,
        )
        blackjack = BlackjackFlow(ledger, bias, sessions, settings.blackjack)
        return cls(
            settings=settings,
            engine=engine,
            session_factory=session_factory,
            ledger=ledger,
            bias=bias,
            sessions=sessions,
            blackjack=blackjack,
        )

    async def startup(self, *, create_schema: bool = False) -> None:
        """Start background tasks; ``create_schema`` runs create-all for development."""
        if self._started:
            return
        configure_logging(self.settings.logging)
        if create_schema:
            await init_db(self.engine)
        await self.sessions.start()
        self._started = True
        logger.info("%s core started (%s)", self.settings.project_name, self.settings.environment)

    async def shutdown(self) -> None:
        if not self._started:
            return
        await self.sessions.stop()
        await self.engine.dispose()
        self._started = False
        logger.info("%s core stopped", self.settings.project_name)


@lru_cache()
def get_container() -> ApplicationContainer:
    return ApplicationContainer.build()


__all__ = ["ApplicationContainer", "get_container"]
