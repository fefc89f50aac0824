"""Repository protocol for wallet operations."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, Sequence

from casinobot.infrastructure.database.models import Wallet as WalletModel, WalletTransaction as WalletTransactionModel


class WalletRepository(Protocol):
    async def get_wallet(self, community_id: str, member_id: str) -> WalletModel | None:
        ...

    async def ensure_wallet(self, community_id: str, member_id: str) -> WalletModel:
        ...

    async def lock_wallet(self, wallet_id: int) -> None:
        ...

    async def get_balance(self, wallet_id: int) -> int:
        ...

    async def apply_delta(self, wallet_id: int, delta: int) -> int | None:
        """Return the new balance, or ``None`` when it would drop below zero."""
        ...

    async def add_transaction(
        self,
        *,
        wallet: WalletModel,
        type: str,
        amount: int,
        balance_after: int,
        reason: str | None,
        meta: str | None,
        created_at: datetime,
    ) -> WalletTransactionModel:
        ...

    async def latest_transaction(self, community_id: str, member_id: str, type: str) -> WalletTransactionModel | None:
        ...

    async def list_transactions(
        self, community_id: str, member_id: str, limit: int, offset: int
    ) -> Sequence[WalletTransactionModel]:
        ...
