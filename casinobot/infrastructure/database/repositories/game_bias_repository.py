"""SQLAlchemy implementation for the game bias domain"""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError

from casinobot.domain.common.repository import AsyncRepository
from casinobot.infrastructure.database.models import GameBias

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class SqlGameBiasRepository(AsyncRepository[GameBias]):
    async def find(self, community_id: str, member_id: str, game_type: str) -> GameBias | None:
        stmt = select(GameBias).where(
            GameBias.community_id == community_id,
            GameBias.member_id == member_id,
            GameBias.game_type == game_type,
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def ensure(self, community_id: str, member_id: str, game_type: str) -> GameBias:
        record = await self.find(community_id, member_id, game_type)
        if record is not None:
            return record

        insert = _UPSERT_DIALECTS.get(self.dialect_name)
        if insert is not None:
            stmt = (
                insert(GameBias)
                .values(community_id=community_id, member_id=member_id, game_type=game_type, loss_count=0)
                .on_conflict_do_nothing(index_elements=["community_id", "member_id", "game_type"])
            )
            await self.session.execute(stmt)
        else:
            try:
                async with self.session.begin_nested():
                    self.session.add(
                        GameBias(community_id=community_id, member_id=member_id, game_type=game_type, loss_count=0)
                    )
            except IntegrityError:
                pass  # created concurrently; re-read below

        record = await self.find(community_id, member_id, game_type)
        if record is None:
            raise RuntimeError(f"bias for {community_id}:{member_id}:{game_type} vanished after insert")
        return record

    async def reset(self, community_id: str, member_id: str, game_type: str) -> int:
        record = await self.ensure(community_id, member_id, game_type)
        await self.session.execute(
            update(GameBias)
            .where(GameBias.id == record.id)
            .values(loss_count=0)
            .execution_options(synchronize_session=False)
        )
        return 0

    async def increment_loss(self, community_id: str, member_id: str, game_type: str) -> int:
        record = await self.ensure(community_id, member_id, game_type)
        result = await self.session.execute(
            update(GameBias)
            .where(GameBias.id == record.id)
            .values(loss_count=GameBias.loss_count + 1)
            .execution_options(synchronize_session=False)
            .returning(GameBias.loss_count)
        )
        return result.scalar_one()
