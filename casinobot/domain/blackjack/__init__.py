"""Blackjack domain exports"""

from .cards import Card, Rank, Suit, card, create_deck, draw, format_card, format_hand, hand_value, is_blackjack, shuffle
from .engine import (
    ActionType,
    BlackjackGame,
    BlackjackResult,
    GameAction,
    GameSummary,
    HandSummary,
    can_double_down,
    create_game,
    double_down,
    hit,
    payout_multiplier,
    result_to_outcome,
    stand,
    summarize,
)
from .exceptions import BlackjackError, EngineStateError, SessionAlreadyActiveError, SessionError, SettlementError
from .flow import BlackjackFlow, PlayerAction, RoundView, Settlement
from .sessions import BlackjackSession, BlackjackSessionStore, Wager

__all__ = [
    "ActionType",
    "BlackjackError",
    "BlackjackFlow",
    "BlackjackGame",
    "BlackjackResult",
    "BlackjackSession",
    "BlackjackSessionStore",
    "Card",
    "EngineStateError",
    "GameAction",
    "GameSummary",
    "HandSummary",
    "PlayerAction",
    "Rank",
    "RoundView",
    "SessionAlreadyActiveError",
    "SessionError",
    "Settlement",
    "SettlementError",
    "Suit",
    "Wager",
    "can_double_down",
    "card",
    "create_deck",
    "create_game",
    "double_down",
    "draw",
    "format_card",
    "format_hand",
    "hand_value",
    "hit",
    "is_blackjack",
    "payout_multiplier",
    "result_to_outcome",
    "shuffle",
    "stand",
    "summarize",
]
