"""SQLAlchemy ORM models."""
from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from casinobot.infrastructure.database.base import Base


class Wallet(Base):
    __tablename__ = "wallets"
    __table_args__ = (
        UniqueConstraint("community_id", "member_id", name="uq_wallets_community_member"),
        CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    community_id = Column(String(64), nullable=False, index=True)
    member_id = Column(String(64), nullable=False)
    balance = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    transactions = relationship("WalletTransaction", back_populates="wallet", cascade="all, delete-orphan")


class WalletTransaction(Base):
    __tablename__ = "wallet_transactions"
    __table_args__ = (
        Index("ix_wallet_transactions_member_type", "community_id", "member_id", "type", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet_id = Column(Integer, ForeignKey("wallets.id"), nullable=False, index=True)
    community_id = Column(String(64), nullable=False)
    member_id = Column(String(64), nullable=False)
    type = Column(String(20), nullable=False)  # EARN, SPEND, GAME_BET, DAILY_BONUS, ...
    amount = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)
    reason = Column(String(255))
    meta = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    wallet = relationship("Wallet", back_populates="transactions")


class GameBias(Base):
    __tablename__ = "game_biases"
    __table_args__ = (
        UniqueConstraint("community_id", "member_id", "game_type", name="uq_game_biases_member_game"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    community_id = Column(String(64), nullable=False, index=True)
    member_id = Column(String(64), nullable=False)
    game_type = Column(String(32), nullable=False)
    loss_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
