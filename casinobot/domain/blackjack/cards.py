"""Deck construction, shuffling and hand arithmetic."""

from __future__ import annotations

import random
import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from .exceptions import EngineStateError

HIDDEN_CARD = "🂠"


class Suit(Enum):
    SPADES = "♠"
    HEARTS = "♥"
    DIAMONDS = "♦"
    CLUBS = "♣"

    @property
    def symbol(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Rank:
    label: str
    value: int


RANKS: tuple[Rank, ...] = (
    Rank("A", 11),
    Rank("2", 2),
    Rank("3", 3),
    Rank("4", 4),
    Rank("5", 5),
    Rank("6", 6),
    Rank("7", 7),
    Rank("8", 8),
    Rank("9", 9),
    Rank("10", 10),
    Rank("J", 10),
    Rank("Q", 10),
    Rank("K", 10),
)
RANKS_BY_LABEL = {rank.label: rank for rank in RANKS}


@dataclass(frozen=True, slots=True)
class Card:
    suit: Suit
    rank: Rank

    @property
    def value(self) -> int:
        return self.rank.value

    @property
    def is_ace(self) -> bool:
        return self.rank.label == "A"

    def __str__(self) -> str:
        return format_card(self)


def card(label: str, suit: Suit = Suit.SPADES) -> Card:
    """Build a card from its rank label, e.g. ``card("A")``."""
    return Card(suit=suit, rank=RANKS_BY_LABEL[label])


def create_deck(deck_count: int = 4) -> list[Card]:
    return [Card(suit=suit, rank=rank) for _ in range(deck_count) for suit in Suit for rank in RANKS]


def shuffle(deck: list[Card], rng: Optional[random.Random] = None) -> list[Card]:
    """Fisher-Yates in place; defaults to the OS CSPRNG."""
    rng = rng or secrets.SystemRandom()
    for i in range(len(deck) - 1, 0, -1):
        j = rng.randrange(i + 1)
        deck[i], deck[j] = deck[j], deck[i]
    return deck


def draw(deck: list[Card], count: int = 1) -> list[Card]:
    if count > len(deck):
        raise EngineStateError(f"cannot draw {count} card(s) from a pile of {len(deck)}")
    drawn = deck[:count]
    del deck[:count]
    return drawn


def hand_value(cards: Iterable[Card]) -> int:
    total = 0
    aces = 0
    for c in cards:
        total += c.value
        if c.is_ace:
            aces += 1

    while total > 21 and aces > 0:
        total -= 10
        aces -= 1

    return total


def is_blackjack(cards: list[Card]) -> bool:
    return len(cards) == 2 and hand_value(cards) == 21


def format_card(c: Card) -> str:
    return f"{c.rank.label}{c.suit.symbol}"


def format_hand(cards: list[Card], hide_hole: bool = False) -> str:
    if hide_hole and cards:
        first, *rest = cards
        return " ".join([format_card(first), *(HIDDEN_CARD for _ in rest)])
    return " ".join(format_card(c) for c in cards)
