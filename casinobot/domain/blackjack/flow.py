"""Round orchestration: wallet debits, engine transitions, settlement.

Command-facing operations return ``Ok`` / ``Err`` so the caller has to branch
on caller-correctable failures; infrastructure failures still raise. Money is
moved before the engine state it pays for: a stake is debited before the deal
and an extra double-down stake before the extra card. When a later step fails
before any payout has landed, the debited amount is refunded.
"""

from __future__ import annotations

import dataclasses
import logging
import numbers
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from casinobot.core.config import BlackjackSettings
from casinobot.domain.common.result import Err, ErrorKind, Failure, Ok, Result
from casinobot.domain.game_bias import BiasSnapshot, GameBiasService
from casinobot.domain.wallets import LedgerError, LedgerService, TransactionType

from .engine import (
    BlackjackGame,
    BlackjackResult,
    GameSummary,
    can_double_down,
    create_game,
    double_down,
    hit,
    payout_multiplier,
    result_to_outcome,
    stand,
    summarize,
)
from .exceptions import EngineStateError, SessionAlreadyActiveError, SettlementError
from .sessions import BlackjackSession, BlackjackSessionStore, Wager

logger = logging.getLogger(__name__)


class PlayerAction(str, Enum):
    HIT = "hit"
    STAND = "stand"
    DOUBLE = "double"


@dataclass(frozen=True, slots=True)
class Settlement:
    payout: int
    total_bet: int
    net_change: int
    balance: Optional[int]


@dataclass(frozen=True, slots=True)
class RoundView:
    session_id: str
    community_id: Optional[str]
    member_id: str
    summary: GameSummary
    wager: Wager
    settlement: Optional[Settlement] = None

    @property
    def finished(self) -> bool:
        return self.summary.finished


def _failure(kind: ErrorKind, message: str, **context: Any) -> Err[Failure]:
    return Err(Failure(kind=kind, message=message, context=context))


def _ledger_failure(exc: LedgerError) -> Err[Failure]:
    return Err(Failure(kind=ErrorKind(exc.code), message=exc.message, context=dict(exc.context), cause=exc))


class BlackjackFlow:
    def __init__(
        self,
        ledger: LedgerService,
        bias: GameBiasService,
        sessions: BlackjackSessionStore,
        settings: Optional[BlackjackSettings] = None,
        *,
        rng: Optional[random.Random] = None,
        dealer: Optional[Callable[[int], BlackjackGame]] = None,
    ) -> None:
        self.ledger = ledger
        self.bias = bias
        self.sessions = sessions
        self.settings = settings or BlackjackSettings()
        self._rng = rng or random.Random()
        self._dealer = dealer or (lambda bet: create_game(bet, self.settings.deck_count))

    @property
    def game_type(self) -> str:
        return self.settings.game_type

    async def start_round(
        self,
        community_id: Optional[str],
        member_id: str,
        bet: int = 0,
        *,
        channel_id: Optional[str] = None,
        interaction_id: Optional[str] = None,
    ) -> Result[RoundView, Failure]:
        existing = self.sessions.get_active_session_for_user(community_id, member_id)
        if existing is not None:
            return _failure(ErrorKind.SESSION_ACTIVE, "a blackjack round is already in progress", session_id=existing.id)

        if isinstance(bet, bool) or not isinstance(bet, numbers.Integral) or bet < 0:
            return _failure(ErrorKind.INVALID_AMOUNT, "bet must be a non-negative integer", amount=bet)
        bet = int(bet)

        metadata = {"game": self.game_type, "interaction_id": interaction_id}
        if bet > 0:
            try:
                await self.ledger.place_bet(community_id, member_id, bet, metadata)
            except LedgerError as exc:
                return _ledger_failure(exc)

        try:
            bias = await self._prepare_bias(community_id, member_id)
            game = self._deal(bet, bias)
            session = self.sessions.create_session(
                community_id,
                member_id,
                game,
                Wager.for_bet(bet),
                bias=bias,
                channel_id=channel_id,
                interaction_id=interaction_id,
            )
        except SessionAlreadyActiveError as exc:
            # another round for this member opened while the bet was in flight
            if bet > 0:
                await self._refund(community_id, member_id, bet, "blackjack duplicate round refund", metadata)
            return _failure(ErrorKind.SESSION_ACTIVE, "a blackjack round is already in progress", session_id=exc.session_id)
        except Exception:
            if bet > 0:
                await self._refund(community_id, member_id, bet, "blackjack setup failure refund", metadata)
            raise

        logger.info("Blackjack round %s started for %s:%s with bet %d", session.id, community_id, member_id, bet)

        settlement = None
        if game.finished:
            settlement = await self._settle_or_refund(session)
        return Ok(self._view(session, settlement))

    async def act(
        self,
        session_id: str,
        member_id: str,
        action: PlayerAction | str,
        *,
        interaction_id: Optional[str] = None,
    ) -> Result[RoundView, Failure]:
        try:
            action = PlayerAction(action)
        except ValueError:
            return _failure(ErrorKind.ILLEGAL_ACTION, f"unknown action: {action}", action=action)

        session = self.sessions.get_session(session_id)
        if session is None:
            return _failure(ErrorKind.SESSION_NOT_FOUND, "this blackjack round has already ended", session_id=session_id)
        if session.member_id != member_id:
            return _failure(ErrorKind.NOT_SESSION_OWNER, "only the player who started the round can act", session_id=session_id)

        async with session.lock:
            # an earlier action may have finished the round while this one waited
            if not self._is_live(session) or session.game.finished or session.wager.settled:
                return _failure(ErrorKind.GAME_FINISHED, "this blackjack round has already ended", session_id=session_id)

            game = session.game
            wager = session.wager
            metadata = {"game": self.game_type, "interaction_id": interaction_id, "session_id": session.id}
            additional = 0

            if action is PlayerAction.DOUBLE:
                if not can_double_down(game):
                    return _failure(ErrorKind.ILLEGAL_ACTION, "double down is only allowed as the first action")
                if wager.initial <= 0:
                    return _failure(ErrorKind.ILLEGAL_ACTION, "double down requires a bet")
                additional = game.bet_amount
                try:
                    await self.ledger.place_bet(
                        session.community_id, member_id, additional, {**metadata, "reason": "double-down"}
                    )
                except LedgerError as exc:
                    return _ledger_failure(exc)
                if not self._is_live(session):
                    await self._refund(
                        session.community_id, member_id, additional, "blackjack double down refund", metadata
                    )
                    return _failure(ErrorKind.SESSION_NOT_FOUND, "this blackjack round has expired", session_id=session_id)

            try:
                if action is PlayerAction.HIT:
                    hit(game)
                elif action is PlayerAction.STAND:
                    stand(game)
                else:
                    double_down(game)
            except EngineStateError as exc:
                if additional:
                    await self._refund(
                        session.community_id, member_id, additional, "blackjack double down refund", metadata
                    )
                return Err(Failure(kind=ErrorKind.ILLEGAL_ACTION, message=str(exc), cause=exc))
            except Exception:
                if additional:
                    await self._refund(
                        session.community_id, member_id, additional, "blackjack double down refund", metadata
                    )
                raise

            if additional:
                wager.double_down = True
                wager.debited += additional
                wager.net_change -= additional

            settlement = None
            if game.finished:
                settlement = await self._settle_or_refund(session)
            else:
                self.sessions.update_session(session.id)
            return Ok(self._view(session, settlement))

    def view(self, session_id: str) -> Result[RoundView, Failure]:
        session = self.sessions.get_session(session_id)
        if session is None:
            return _failure(ErrorKind.SESSION_NOT_FOUND, "this blackjack round has already ended", session_id=session_id)
        return Ok(self._view(session, None))

    @staticmethod
    def calculate_payout(session: BlackjackSession) -> tuple[int, int]:
        """Return ``(payout, total_bet)`` for a finished round."""
        game = session.game
        total_bet = game.bet_amount
        if total_bet <= 0:
            return 0, 0

        if game.initial_blackjack and not game.dealer_blackjack:
            base = session.wager.initial or total_bet
            return (base * 5) // 2, base

        return int(total_bet * payout_multiplier(game)), total_bet

    async def settle_session(self, session: BlackjackSession) -> Settlement:
        game = session.game
        wager = session.wager
        if not game.finished:
            raise SettlementError(f"session {session.id} is still in progress")
        if wager.settled:
            raise SettlementError(f"session {session.id} was already settled")

        # claimed before any await so a concurrent caller cannot pay out twice
        wager.settled = True
        payout, total_bet = self.calculate_payout(session)
        debited = wager.debited
        net_change = -debited
        metadata = {"game": self.game_type, "session_id": session.id, "total_bet": total_bet}

        try:
            if game.result is BlackjackResult.PLAYER_WIN:
                if payout > 0:
                    await self.ledger.payout_win(session.community_id, session.member_id, payout, metadata)
                    net_change = payout - debited
            elif game.result is BlackjackResult.PUSH:
                if total_bet > 0:
                    await self.ledger.credit(
                        session.community_id,
                        session.member_id,
                        total_bet,
                        type=TransactionType.ADJUST,
                        reason="blackjack push refund",
                        metadata=metadata,
                    )
                net_change = 0
        except Exception:
            wager.settled = False
            raise

        wager.payout = payout
        wager.net_change = net_change

        await self._record_outcome(session)
        balance = await self._fresh_balance(session)
        self.sessions.end_session(session.id)

        logger.info(
            "Blackjack round %s settled: result=%s payout=%d net=%d",
            session.id,
            game.result.value if game.result else None,
            payout,
            net_change,
        )
        return Settlement(payout=payout, total_bet=total_bet, net_change=net_change, balance=balance)

    def _deal(self, bet: int, bias: Optional[BiasSnapshot]) -> BlackjackGame:
        game = self._dealer(bet)
        if (
            bias is not None
            and bias.reroll_chance > 0
            and game.finished
            and game.result is BlackjackResult.DEALER_WIN
            and self._rng.random() < bias.reroll_chance
        ):
            logger.debug("Redealing opening loss for %s:%s", bias.community_id, bias.member_id)
            game = self._dealer(bet)
        return game

    def _is_live(self, session: BlackjackSession) -> bool:
        return self.sessions.get_session(session.id) is session

    async def _settle_or_refund(self, session: BlackjackSession) -> Settlement:
        try:
            return await self.settle_session(session)
        except Exception:
            # nothing was paid out; return the stake and drop the round
            self.sessions.end_session(session.id)
            if session.wager.debited > 0:
                await self._refund(
                    session.community_id,
                    session.member_id,
                    session.wager.debited,
                    "blackjack settlement failure refund",
                    {"game": self.game_type, "session_id": session.id},
                )
            raise

    async def _prepare_bias(self, community_id: Optional[str], member_id: str) -> Optional[BiasSnapshot]:
        if community_id is None:
            return None
        return await self.bias.prepare(community_id, member_id, self.game_type)

    async def _record_outcome(self, session: BlackjackSession) -> None:
        if session.community_id is None:
            return
        try:
            await self.bias.record_outcome(
                session.community_id, session.member_id, self.game_type, result_to_outcome(session.game.result)
            )
        except Exception:  # pylint: disable=broad-except
            logger.exception("Failed to record blackjack outcome for session %s", session.id)

    async def _fresh_balance(self, session: BlackjackSession) -> Optional[int]:
        if session.community_id is None:
            return None
        try:
            snapshot = await self.ledger.get_balance(session.community_id, session.member_id)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Failed to read balance after settling session %s", session.id)
            return None
        return snapshot.balance

    async def _refund(
        self,
        community_id: Optional[str],
        member_id: str,
        amount: int,
        reason: str,
        metadata: dict[str, Any],
    ) -> None:
        try:
            await self.ledger.credit(
                community_id, member_id, amount, type=TransactionType.ADJUST, reason=reason, metadata=metadata
            )
        except Exception:  # pylint: disable=broad-except
            logger.exception("Refund of %d to %s:%s failed (%s)", amount, community_id, member_id, reason)

    def _view(self, session: BlackjackSession, settlement: Optional[Settlement]) -> RoundView:
        game = session.game
        return RoundView(
            session_id=session.id,
            community_id=session.community_id,
            member_id=session.member_id,
            summary=summarize(game, hide_hole=not game.finished),
            wager=dataclasses.replace(session.wager),
            settlement=settlement,
        )
