"""Currency ledger service.

Every mutator runs inside a single unit of work: the wallet row is created on
demand, the balance moves through one guarded ``UPDATE`` that refuses to go
below zero, and the matching transaction row is appended before commit. A
failed guard rolls the whole unit back, so callers never observe a partial
effect.
"""

from __future__ import annotations

import json
import logging
import math
import numbers
import random
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from casinobot.core.config import LedgerSettings
from casinobot.domain.common.unit_of_work import UnitOfWork
from casinobot.infrastructure.database.models import Wallet as WalletModel, WalletTransaction as WalletTransactionModel
from casinobot.infrastructure.database.repositories.wallet_repository import SqlWalletRepository

from .exceptions import (
    CooldownActiveError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidTargetError,
    MissingCommunityError,
)
from .models import DailyClaim, TransactionType, TransferResult, WalletSnapshot, WalletTransactionRecord
from .repository import WalletRepository

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _require_nonzero(amount: Any) -> int:
    if (
        isinstance(amount, bool)
        or not isinstance(amount, numbers.Real)
        or not math.isfinite(amount)
        or amount == 0
        or int(amount) != amount
    ):
        raise InvalidAmountError(amount)
    return int(amount)


def _require_positive(amount: Any) -> int:
    value = _require_nonzero(amount)
    if value < 0:
        raise InvalidAmountError(amount)
    return value


def _require_community(community_id: Optional[str]) -> str:
    if not community_id:
        raise MissingCommunityError("a community id is required for wallet operations")
    return community_id


def _dump_meta(metadata: Optional[dict[str, Any]]) -> Optional[str]:
    if not metadata:
        return None
    return json.dumps(metadata, default=str, ensure_ascii=False)


@dataclass(slots=True)
class LedgerService:
    uow: UnitOfWork
    settings: LedgerSettings = field(default_factory=LedgerSettings)
    clock: Callable[[], datetime] = utcnow
    rng: random.Random = field(default_factory=secrets.SystemRandom)
    repository_factory: Callable[[AsyncSession], WalletRepository] = SqlWalletRepository

    @property
    def daily_cooldown(self) -> timedelta:
        return timedelta(seconds=self.settings.daily_cooldown_seconds)

    async def get_balance(self, community_id: str, member_id: str) -> WalletSnapshot:
        _require_community(community_id)
        async with self.uow.transaction() as session:
            wallet = await self.repository_factory(session).ensure_wallet(community_id, member_id)
            return self._to_snapshot(wallet)

    async def credit(
        self,
        community_id: str,
        member_id: str,
        amount: Any,
        *,
        type: TransactionType = TransactionType.EARN,
        reason: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> WalletSnapshot:
        amount = _require_positive(amount)
        return await self._adjust(community_id, member_id, amount, type, reason, metadata)

    async def debit(
        self,
        community_id: str,
        member_id: str,
        amount: Any,
        *,
        type: TransactionType = TransactionType.SPEND,
        reason: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> WalletSnapshot:
        amount = _require_positive(amount)
        return await self._adjust(community_id, member_id, -amount, type, reason, metadata)

    async def adjust(
        self,
        community_id: str,
        member_id: str,
        amount: Any,
        *,
        reason: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> WalletSnapshot:
        """Manual signed correction; a negative amount still cannot overdraw."""
        delta = _require_nonzero(amount)
        return await self._adjust(community_id, member_id, delta, TransactionType.ADJUST, reason, metadata)

    async def place_bet(
        self, community_id: str, member_id: str, amount: Any, metadata: Optional[dict[str, Any]] = None
    ) -> WalletSnapshot:
        return await self.debit(
            community_id,
            member_id,
            amount,
            type=TransactionType.GAME_BET,
            reason="game bet",
            metadata=metadata,
        )

    async def payout_win(
        self, community_id: str, member_id: str, amount: Any, metadata: Optional[dict[str, Any]] = None
    ) -> WalletSnapshot:
        return await self.credit(
            community_id,
            member_id,
            amount,
            type=TransactionType.GAME_WIN,
            reason="game win payout",
            metadata=metadata,
        )

    async def transfer(
        self,
        community_id: str,
        sender_id: str,
        recipient_id: str,
        amount: Any,
        *,
        reason: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> TransferResult:
        amount = _require_positive(amount)
        _require_community(community_id)
        if sender_id == recipient_id:
            raise InvalidTargetError("cannot transfer to yourself")

        async with self.uow.transaction() as session:
            repo = self.repository_factory(session)
            sender = await repo.ensure_wallet(community_id, sender_id)
            recipient = await repo.ensure_wallet(community_id, recipient_id)
            # lock in id order so opposite transfers cannot deadlock
            for wallet in sorted((sender, recipient), key=lambda w: w.id):
                await repo.lock_wallet(wallet.id)

            base = dict(metadata or {})
            sent = await self._apply(
                repo, sender, -amount, TransactionType.TRANSFER_OUT, reason, {**base, "to": recipient_id}
            )
            received = await self._apply(
                repo, recipient, amount, TransactionType.TRANSFER_IN, reason, {**base, "from": sender_id}
            )

        logger.info("Transfer of %s in %s from %s to %s", amount, community_id, sender_id, recipient_id)
        return TransferResult(sender=sent, recipient=received, amount=amount)

    async def claim_daily(self, community_id: str, member_id: str) -> DailyClaim:
        _require_community(community_id)
        now = self.clock()
        cooldown = self.daily_cooldown

        async with self.uow.transaction() as session:
            repo = self.repository_factory(session)
            wallet = await repo.ensure_wallet(community_id, member_id)
            # serialize concurrent claims on this wallet before reading the last claim
            await repo.lock_wallet(wallet.id)

            last_claim = await repo.latest_transaction(community_id, member_id, TransactionType.DAILY_BONUS.value)
            if last_claim is not None:
                claimed_at = _as_utc(last_claim.created_at)
                if now - claimed_at < cooldown:
                    raise CooldownActiveError(retry_at=claimed_at + cooldown)

            low, high = self.settings.daily_min_reward, self.settings.daily_max_reward
            reward = low + self.rng.randrange(high - low + 1)
            snapshot = await self._apply(repo, wallet, reward, TransactionType.DAILY_BONUS, "daily bonus", None)

        return DailyClaim(reward=reward, balance=snapshot, next_claim_at=now + cooldown)

    async def list_transactions(
        self, community_id: str, member_id: str, limit: int = 20, offset: int = 0
    ) -> list[WalletTransactionRecord]:
        _require_community(community_id)
        async with self.uow.transaction() as session:
            rows = await self.repository_factory(session).list_transactions(community_id, member_id, limit, offset)
            return [self._to_transaction(row) for row in rows]

    async def _adjust(
        self,
        community_id: str,
        member_id: str,
        delta: int,
        type: TransactionType,
        reason: Optional[str],
        metadata: Optional[dict[str, Any]],
    ) -> WalletSnapshot:
        _require_community(community_id)
        async with self.uow.transaction() as session:
            repo = self.repository_factory(session)
            wallet = await repo.ensure_wallet(community_id, member_id)
            return await self._apply(repo, wallet, delta, type, reason, metadata)

    async def _apply(
        self,
        repo: WalletRepository,
        wallet: WalletModel,
        delta: int,
        type: TransactionType,
        reason: Optional[str],
        metadata: Optional[dict[str, Any]],
    ) -> WalletSnapshot:
        balance = await repo.apply_delta(wallet.id, delta)
        if balance is None:
            current = await repo.get_balance(wallet.id)
            raise InsufficientFundsError(current=current, required=-delta)

        now = self.clock()
        await repo.add_transaction(
            wallet=wallet,
            type=TransactionType(type).value,
            amount=delta,
            balance_after=balance,
            reason=reason,
            meta=_dump_meta(metadata),
            created_at=now,
        )
        logger.debug(
            "Wallet %s:%s %s %+d -> %d", wallet.community_id, wallet.member_id, TransactionType(type).value, delta, balance
        )
        return WalletSnapshot(
            community_id=wallet.community_id,
            member_id=wallet.member_id,
            balance=balance,
            updated_at=now,
        )

    @staticmethod
    def _to_snapshot(model: WalletModel) -> WalletSnapshot:
        return WalletSnapshot(
            community_id=model.community_id,
            member_id=model.member_id,
            balance=model.balance,
            updated_at=model.updated_at,
        )

    @staticmethod
    def _to_transaction(model: WalletTransactionModel) -> WalletTransactionRecord:
        return WalletTransactionRecord(
            id=model.id,
            community_id=model.community_id,
            member_id=model.member_id,
            type=model.type,
            amount=model.amount,
            balance_after=model.balance_after,
            reason=model.reason,
            metadata=json.loads(model.meta) if model.meta else {},
            created_at=_as_utc(model.created_at) if model.created_at else None,
        )


def get_cooldown_info(error: BaseException) -> Optional[dict[str, Any]]:
    if isinstance(error, CooldownActiveError):
        return dict(error.context)
    return None
