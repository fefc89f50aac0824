"""Wallet domain exports"""

from .exceptions import (
    CooldownActiveError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidTargetError,
    LedgerError,
    MissingCommunityError,
)
from .models import DailyClaim, TransactionType, TransferResult, WalletSnapshot, WalletTransactionRecord
from .service import LedgerService, get_cooldown_info

__all__ = [
    "CooldownActiveError",
    "DailyClaim",
    "InsufficientFundsError",
    "InvalidAmountError",
    "InvalidTargetError",
    "LedgerError",
    "LedgerService",
    "MissingCommunityError",
    "TransactionType",
    "TransferResult",
    "WalletSnapshot",
    "WalletTransactionRecord",
    "get_cooldown_info",
]
