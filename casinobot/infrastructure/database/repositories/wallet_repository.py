"""SQLAlchemy implementation for wallet domain"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import desc, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.sql import func

from casinobot.domain.common.repository import AsyncRepository
from casinobot.infrastructure.database.models import Wallet, WalletTransaction

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class SqlWalletRepository(AsyncRepository[Wallet]):
    async def get_wallet(self, community_id: str, member_id: str) -> Wallet | None:
        stmt = select(Wallet).where(Wallet.community_id == community_id, Wallet.member_id == member_id)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def ensure_wallet(self, community_id: str, member_id: str) -> Wallet:
        wallet = await self.get_wallet(community_id, member_id)
        if wallet is not None:
            return wallet

        insert = _UPSERT_DIALECTS.get(self.dialect_name)
        if insert is not None:
            stmt = (
                insert(Wallet)
                .values(community_id=community_id, member_id=member_id, balance=0)
                .on_conflict_do_nothing(index_elements=["community_id", "member_id"])
            )
            await self.session.execute(stmt)
        else:
            try:
                async with self.session.begin_nested():
                    self.session.add(Wallet(community_id=community_id, member_id=member_id, balance=0))
            except IntegrityError:
                pass  # created concurrently; re-read below

        wallet = await self.get_wallet(community_id, member_id)
        if wallet is None:
            raise RuntimeError(f"wallet for {community_id}:{member_id} vanished after insert")
        return wallet

    async def lock_wallet(self, wallet_id: int) -> None:
        # a no-op write takes the row lock (PostgreSQL) or the write lock (SQLite)
        stmt = (
            update(Wallet)
            .where(Wallet.id == wallet_id)
            .values(updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def get_balance(self, wallet_id: int) -> int:
        result = await self.session.execute(select(Wallet.balance).where(Wallet.id == wallet_id))
        return result.scalar_one()

    async def apply_delta(self, wallet_id: int, delta: int) -> int | None:
        stmt = (
            update(Wallet)
            .where(Wallet.id == wallet_id, Wallet.balance + delta >= 0)
            .values(balance=Wallet.balance + delta)
            .execution_options(synchronize_session=False)
            .returning(Wallet.balance)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add_transaction(
        self,
        *,
        wallet: Wallet,
        type: str,
        amount: int,
        balance_after: int,
        reason: str | None,
        meta: str | None,
        created_at: datetime,
    ) -> WalletTransaction:
        tx = WalletTransaction(
            wallet_id=wallet.id,
            community_id=wallet.community_id,
            member_id=wallet.member_id,
            type=type,
            amount=amount,
            balance_after=balance_after,
            reason=reason,
            meta=meta,
            created_at=created_at,
        )
        return await self.add(tx)

    async def latest_transaction(self, community_id: str, member_id: str, type: str) -> WalletTransaction | None:
        stmt = (
            select(WalletTransaction)
            .where(
                WalletTransaction.community_id == community_id,
                WalletTransaction.member_id == member_id,
                WalletTransaction.type == type,
            )
            .order_by(desc(WalletTransaction.created_at), desc(WalletTransaction.id))
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def list_transactions(
        self, community_id: str, member_id: str, limit: int, offset: int
    ) -> list[WalletTransaction]:
        stmt = (
            select(WalletTransaction)
            .where(WalletTransaction.community_id == community_id, WalletTransaction.member_id == member_id)
            .order_by(desc(WalletTransaction.created_at), desc(WalletTransaction.id))
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
