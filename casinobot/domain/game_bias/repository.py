"""Repository protocol for game bias records."""

from __future__ import annotations

from typing import Protocol

from casinobot.infrastructure.database.models import GameBias as GameBiasModel


class GameBiasRepository(Protocol):
    async def find(self, community_id: str, member_id: str, game_type: str) -> GameBiasModel | None:
        ...

    async def ensure(self, community_id: str, member_id: str, game_type: str) -> GameBiasModel:
        ...

    async def reset(self, community_id: str, member_id: str, game_type: str) -> int:
        ...

    async def increment_loss(self, community_id: str, member_id: str, game_type: str) -> int:
        ...
