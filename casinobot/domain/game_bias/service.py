"""Loss-streak ("pity timer") tracker.

Each consecutive dealer win raises the player's nominal win rate by a fixed
increment up to a cap; the surplus over the base rate becomes the chance that a
losing opening deal is silently redealt. A player win resets the streak, a draw
leaves it alone. The nudge is bounded and never guarantees a win.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from casinobot.core.config import BiasSettings
from casinobot.domain.common.unit_of_work import UnitOfWork
from casinobot.infrastructure.database.repositories.game_bias_repository import SqlGameBiasRepository

from .models import BiasSnapshot, Outcome
from .repository import GameBiasRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class GameBiasService:
    uow: UnitOfWork
    settings: BiasSettings = field(default_factory=BiasSettings)
    repository_factory: Callable[[AsyncSession], GameBiasRepository] = SqlGameBiasRepository

    def calculate_win_rate(self, loss_count: int) -> float:
        s = self.settings
        return min(s.base_win_rate + s.loss_increment * loss_count, s.max_win_rate)

    def calculate_reroll_chance(self, win_rate: float) -> float:
        s = self.settings
        return min(max(win_rate - s.base_win_rate, 0.0) * 2, s.max_reroll_chance)

    async def ensure_bias(self, community_id: str, member_id: str, game_type: str) -> int:
        async with self.uow.transaction() as session:
            record = await self.repository_factory(session).ensure(community_id, member_id, game_type)
            return record.loss_count

    async def prepare(self, community_id: str, member_id: str, game_type: str) -> BiasSnapshot:
        loss_count = await self.ensure_bias(community_id, member_id, game_type)
        win_rate = self.calculate_win_rate(loss_count)
        return BiasSnapshot(
            community_id=community_id,
            member_id=member_id,
            game_type=game_type,
            loss_count=loss_count,
            win_rate=win_rate,
            reroll_chance=self.calculate_reroll_chance(win_rate),
        )

    async def record_outcome(self, community_id: str, member_id: str, game_type: str, outcome: Outcome | str) -> None:
        outcome = Outcome(outcome)
        if outcome is Outcome.PLAYER:
            async with self.uow.transaction() as session:
                await self.repository_factory(session).reset(community_id, member_id, game_type)
        elif outcome is Outcome.DEALER:
            async with self.uow.transaction() as session:
                losses = await self.repository_factory(session).increment_loss(community_id, member_id, game_type)
            logger.debug("Loss streak for %s:%s on %s is now %d", community_id, member_id, game_type, losses)
