"""Domain models for wallet operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class TransactionType(str, Enum):
    EARN = "EARN"
    SPEND = "SPEND"
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"
    ADJUST = "ADJUST"
    GAME_BET = "GAME_BET"
    GAME_WIN = "GAME_WIN"
    DAILY_BONUS = "DAILY_BONUS"


@dataclass(frozen=True, slots=True)
class WalletSnapshot:
    community_id: str
    member_id: str
    balance: int
    updated_at: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class WalletTransactionRecord:
    id: int
    community_id: str
    member_id: str
    type: str
    amount: int
    balance_after: int
    reason: Optional[str]
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class TransferResult:
    sender: WalletSnapshot
    recipient: WalletSnapshot
    amount: int


@dataclass(frozen=True, slots=True)
class DailyClaim:
    reward: int
    balance: WalletSnapshot
    next_claim_at: datetime
