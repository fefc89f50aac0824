"""Domain models for the loss-streak bias tracker."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Outcome(str, Enum):
    PLAYER = "player"
    DEALER = "dealer"
    DRAW = "draw"
    PROGRESS = "progress"


@dataclass(frozen=True, slots=True)
class BiasSnapshot:
    community_id: str
    member_id: str
    game_type: str
    loss_count: int
    win_rate: float
    reroll_chance: float
