"""Ledger specific exceptions."""

from __future__ import annotations

from datetime import datetime
from typing import Any


class LedgerError(Exception):
    """Base class for caller-correctable ledger errors."""

    code = "LEDGER_ERROR"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class InvalidAmountError(LedgerError):
    code = "INVALID_AMOUNT"

    def __init__(self, amount: Any) -> None:
        super().__init__(f"amount must be a positive integer, got {amount!r}", amount=amount)
        self.amount = amount


class InsufficientFundsError(LedgerError):
    code = "INSUFFICIENT_FUNDS"

    def __init__(self, current: int, required: int) -> None:
        super().__init__(
            f"insufficient funds: balance {current}, required {required}",
            current=current,
            required=required,
        )
        self.current = current
        self.required = required


class InvalidTargetError(LedgerError):
    """Raised when a transfer names the sender as its recipient."""

    code = "INVALID_TARGET"


class CooldownActiveError(LedgerError):
    code = "COOLDOWN_ACTIVE"

    def __init__(self, retry_at: datetime) -> None:
        super().__init__(f"daily bonus already claimed, retry at {retry_at.isoformat()}", retry_at=retry_at)
        self.retry_at = retry_at


class MissingCommunityError(LedgerError):
    code = "MISSING_COMMUNITY"
