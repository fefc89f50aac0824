"""Blackjack rules as pure functions over an in-memory game state.

Nothing here performs I/O. A round moves from the opening deal through the
player's turn (hit / stand / double down) to the dealer's turn, where the
dealer draws until reaching 17, and ends resolved. Once ``finished`` is set no
further action is accepted.
"""

from __future__ import annotations

import random
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator, Optional

from .cards import Card, create_deck, draw, format_hand, hand_value, is_blackjack, shuffle
from .exceptions import EngineStateError

DEALER_STANDS_ON = 17
NATURAL_PAYOUT = 2.5


class BlackjackResult(str, Enum):
    PLAYER_WIN = "player_win"
    DEALER_WIN = "dealer_win"
    PUSH = "push"


class ActionType(str, Enum):
    HIT = "hit"
    STAND = "stand"
    DOUBLE = "double"
    DEALER_HIT = "dealer_hit"


@dataclass(frozen=True, slots=True)
class GameAction:
    type: ActionType
    card: Optional[Card] = None


@dataclass(slots=True)
class BlackjackGame:
    deck: list[Card]
    player_hand: list[Card]
    dealer_hand: list[Card]
    bet_amount: int = 0
    player_stood: bool = False
    finished: bool = False
    result: Optional[BlackjackResult] = None
    actions: list[GameAction] = field(default_factory=list)
    initial_blackjack: bool = False
    dealer_blackjack: bool = False

    @property
    def player_value(self) -> int:
        return hand_value(self.player_hand)

    @property
    def dealer_value(self) -> int:
        return hand_value(self.dealer_hand)


@dataclass(frozen=True, slots=True)
class HandSummary:
    cards: tuple[Card, ...]
    value: int
    text: str


@dataclass(frozen=True, slots=True)
class GameSummary:
    player: HandSummary
    dealer: HandSummary
    result: Optional[BlackjackResult]
    finished: bool
    bet_amount: int
    initial_blackjack: bool
    dealer_blackjack: bool
    actions: tuple[GameAction, ...]


def create_game(
    bet_amount: int = 0,
    deck_count: int = 6,
    *,
    deck: Optional[Iterable[Card]] = None,
    rng: Optional[random.Random] = None,
) -> BlackjackGame:
    """Deal a new round. ``deck`` overrides the shuffled shoe and is drawn from the front."""
    pile = list(deck) if deck is not None else shuffle(create_deck(deck_count), rng)
    player_hand = draw(pile, 2)
    dealer_hand = draw(pile, 2)

    game = BlackjackGame(
        deck=pile,
        player_hand=player_hand,
        dealer_hand=dealer_hand,
        bet_amount=bet_amount,
        initial_blackjack=is_blackjack(player_hand),
        dealer_blackjack=is_blackjack(dealer_hand),
    )

    if game.initial_blackjack or game.dealer_blackjack:
        game.finished = True
        if game.initial_blackjack and game.dealer_blackjack:
            game.result = BlackjackResult.PUSH
        elif game.initial_blackjack:
            game.result = BlackjackResult.PLAYER_WIN
        else:
            game.result = BlackjackResult.DEALER_WIN

    return game


def hit(game: BlackjackGame) -> BlackjackGame:
    if game.finished or game.player_stood:
        raise EngineStateError("cannot hit after standing or finishing the game")
    card = draw(game.deck, 1)[0]
    game.player_hand.append(card)
    game.actions.append(GameAction(ActionType.HIT, card))

    if game.player_value > 21:
        game.finished = True
        game.result = BlackjackResult.DEALER_WIN

    return game


def stand(game: BlackjackGame) -> BlackjackGame:
    if game.finished:
        raise EngineStateError("game already finished")

    with _rollback_on_error(game):
        game.player_stood = True
        game.actions.append(GameAction(ActionType.STAND))
        _play_dealer(game)
    return game


def can_double_down(game: BlackjackGame) -> bool:
    return (
        not game.finished
        and not game.player_stood
        and len(game.player_hand) == 2
        and not game.actions
        and len(game.deck) > 0
    )


def double_down(game: BlackjackGame) -> BlackjackGame:
    if not can_double_down(game):
        raise EngineStateError("double down is only allowed as the first action on a two-card hand")

    with _rollback_on_error(game):
        card = draw(game.deck, 1)[0]
        game.actions.append(GameAction(ActionType.DOUBLE, card))
        game.bet_amount *= 2
        game.player_hand.append(card)
        game.player_stood = True

        if game.player_value > 21:
            game.finished = True
            game.result = BlackjackResult.DEALER_WIN
        else:
            _play_dealer(game)
    return game


@contextmanager
def _rollback_on_error(game: BlackjackGame) -> Iterator[None]:
    """Restore the pre-step state if the step raises part way (e.g. the dealer runs out of cards)."""
    saved = (
        list(game.deck),
        list(game.player_hand),
        list(game.dealer_hand),
        list(game.actions),
        game.bet_amount,
        game.player_stood,
        game.finished,
        game.result,
    )
    try:
        yield
    except Exception:
        (
            game.deck[:],
            game.player_hand[:],
            game.dealer_hand[:],
            game.actions[:],
            game.bet_amount,
            game.player_stood,
            game.finished,
            game.result,
        ) = saved
        raise


def _play_dealer(game: BlackjackGame) -> None:
    while game.dealer_value < DEALER_STANDS_ON:
        card = draw(game.deck, 1)[0]
        game.dealer_hand.append(card)
        game.actions.append(GameAction(ActionType.DEALER_HIT, card))
    _resolve(game)


def _resolve(game: BlackjackGame) -> None:
    game.finished = True
    player_value = game.player_value
    dealer_value = game.dealer_value

    if player_value > 21:
        game.result = BlackjackResult.DEALER_WIN
    elif dealer_value > 21:
        game.result = BlackjackResult.PLAYER_WIN
    elif player_value == dealer_value:
        game.result = BlackjackResult.PUSH
    elif player_value > dealer_value:
        game.result = BlackjackResult.PLAYER_WIN
    else:
        game.result = BlackjackResult.DEALER_WIN


def summarize(game: BlackjackGame, *, hide_hole: bool = False) -> GameSummary:
    dealer_text = format_hand(game.dealer_hand, hide_hole=hide_hole)
    return GameSummary(
        player=HandSummary(tuple(game.player_hand), game.player_value, format_hand(game.player_hand)),
        dealer=HandSummary(tuple(game.dealer_hand), game.dealer_value, dealer_text),
        result=game.result,
        finished=game.finished,
        bet_amount=game.bet_amount,
        initial_blackjack=game.initial_blackjack,
        dealer_blackjack=game.dealer_blackjack,
        actions=tuple(game.actions),
    )


def payout_multiplier(game: BlackjackGame) -> float:
    if game.initial_blackjack and not game.dealer_blackjack:
        return NATURAL_PAYOUT
    if game.result is BlackjackResult.PLAYER_WIN:
        return 2
    if game.result is BlackjackResult.PUSH:
        return 1
    return 0


def result_to_outcome(result: Optional[BlackjackResult]) -> str:
    if result is BlackjackResult.PLAYER_WIN:
        return "player"
    if result is BlackjackResult.DEALER_WIN:
        return "dealer"
    if result is BlackjackResult.PUSH:
        return "draw"
    return "progress"
