from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

import pytest

from casinobot.core.config import BiasSettings, BlackjackSettings, DatabaseSettings, LedgerSettings
from casinobot.domain.blackjack import BlackjackFlow, BlackjackSessionStore, card, create_game
from casinobot.domain.common.unit_of_work import UnitOfWork
from casinobot.domain.game_bias import GameBiasService
from casinobot.domain.wallets import LedgerService
from casinobot.infrastructure.database.session import build_engine, build_session_factory, init_db

COMMUNITY = "guild-1"
ALICE = "alice"
BOB = "bob"


class WallClock:
    """Timezone-aware clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class MonotonicClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FixedRandom(random.Random):
    def __init__(self, value: float) -> None:
        super().__init__(0)
        self.value = value

    def random(self) -> float:
        return self.value


class ScriptedDealer:
    """Deals each round from the next scripted draw pile."""

    def __init__(self, *piles: list) -> None:
        self.piles = list(piles)
        self.calls = 0

    def add(self, *labels: str) -> "ScriptedDealer":
        self.piles.append(deck(*labels))
        return self

    def __call__(self, bet: int):
        self.calls += 1
        return create_game(bet, deck=self.piles.pop(0))


def deck(*labels: str) -> list:
    return [card(label) for label in labels]


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'casinobot.db'}"))
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def uow(engine) -> UnitOfWork:
    return UnitOfWork(build_session_factory(engine))


@pytest.fixture
def clock() -> WallClock:
    return WallClock()


@pytest.fixture
def ledger(uow, clock) -> LedgerService:
    return LedgerService(uow, settings=LedgerSettings(), clock=clock, rng=random.Random(7))


@pytest.fixture
def bias(uow) -> GameBiasService:
    return GameBiasService(uow, settings=BiasSettings())


@pytest.fixture
def monotonic() -> MonotonicClock:
    return MonotonicClock()


@pytest.fixture
def store(monotonic) -> BlackjackSessionStore:
    return BlackjackSessionStore(600, sweep_interval=1, clock=monotonic)


@pytest.fixture
def dealer() -> ScriptedDealer:
    return ScriptedDealer()


@pytest.fixture
def flow(ledger, bias, store, dealer) -> BlackjackFlow:
    return BlackjackFlow(ledger, bias, store, BlackjackSettings(), rng=FixedRandom(0.99), dealer=dealer)
