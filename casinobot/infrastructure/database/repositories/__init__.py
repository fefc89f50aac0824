"""SQLAlchemy-backed repository implementations."""

from .game_bias_repository import SqlGameBiasRepository
from .wallet_repository import SqlWalletRepository

__all__ = [
    "SqlGameBiasRepository",
    "SqlWalletRepository",
]
