"""In-process store for live blackjack sessions.

Sessions are indexed by id and by (community, member); a member owns at most
one live session. Each session carries a sliding expiry. Expirations live in a
min-heap with lazy invalidation: sliding or ending a session leaves its old heap
entry behind, and the sweeper discards entries that no longer match the
session's current deadline. An expired session is dropped without settling, so
any stake it holds is forfeited.

The store is process-local; running several workers requires moving it to a
shared expiring store to keep the one-session-per-member rule cluster-wide.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional

from casinobot.domain.game_bias.models import BiasSnapshot

from .engine import BlackjackGame
from .exceptions import SessionAlreadyActiveError

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 10 * 60
DIRECT_MESSAGE_KEY = "dm"


@dataclass(slots=True)
class Wager:
    initial: int = 0
    debited: int = 0
    net_change: int = 0
    payout: int = 0
    double_down: bool = False
    settled: bool = False

    @classmethod
    def for_bet(cls, amount: int) -> "Wager":
        staked = max(amount, 0)
        return cls(initial=staked, debited=staked, net_change=-staked)


@dataclass(slots=True, eq=False)
class BlackjackSession:
    id: str
    community_id: Optional[str]
    member_id: str
    game: BlackjackGame
    wager: Wager
    created_at: float
    expires_at: float
    bias: Optional[BiasSnapshot] = None
    channel_id: Optional[str] = None
    interaction_id: Optional[str] = None
    message_id: Optional[str] = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


class BlackjackSessionStore:
    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        *,
        sweep_interval: float = 30,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._sessions: dict[str, BlackjackSession] = {}
        self._member_index: dict[tuple[str, str], str] = {}
        self._expirations: list[tuple[float, int, str]] = []
        self._seq = itertools.count()
        self._sweeper: Optional[asyncio.Task] = None

    @staticmethod
    def _member_key(community_id: Optional[str], member_id: str) -> tuple[str, str]:
        return (community_id or DIRECT_MESSAGE_KEY, member_id)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def create_session(
        self,
        community_id: Optional[str],
        member_id: str,
        game: BlackjackGame,
        wager: Wager,
        *,
        bias: Optional[BiasSnapshot] = None,
        channel_id: Optional[str] = None,
        interaction_id: Optional[str] = None,
    ) -> BlackjackSession:
        existing = self.get_active_session_for_user(community_id, member_id)
        if existing is not None:
            raise SessionAlreadyActiveError(existing.id)

        now = self._clock()
        session = BlackjackSession(
            id=uuid.uuid4().hex,
            community_id=community_id,
            member_id=member_id,
            game=game,
            wager=wager,
            created_at=now,
            expires_at=now + self.ttl,
            bias=bias,
            channel_id=channel_id,
            interaction_id=interaction_id,
        )
        self._sessions[session.id] = session
        self._member_index[self._member_key(community_id, member_id)] = session.id
        self._schedule(session)
        logger.debug("Blackjack session %s opened for %s:%s", session.id, community_id, member_id)
        return session

    def get_session(self, session_id: str) -> Optional[BlackjackSession]:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if session.expires_at <= self._clock():
            self._expire(session)
            return None
        return session

    def get_active_session_for_user(self, community_id: Optional[str], member_id: str) -> Optional[BlackjackSession]:
        session_id = self._member_index.get(self._member_key(community_id, member_id))
        if session_id is None:
            return None
        return self.get_session(session_id)

    def update_session(
        self,
        session_id: str,
        updater: Optional[Callable[[BlackjackSession], None]] = None,
    ) -> Optional[BlackjackSession]:
        """Apply ``updater`` to a live session and slide its expiry forward."""
        session = self.get_session(session_id)
        if session is None:
            return None
        if updater is not None:
            updater(session)
        session.expires_at = self._clock() + self.ttl
        self._schedule(session)
        return session

    def attach_message(self, session_id: str, message_id: str) -> Optional[BlackjackSession]:
        def _attach(session: BlackjackSession) -> None:
            session.message_id = message_id

        return self.update_session(session_id, _attach)

    def end_session(self, session_id: str) -> Optional[BlackjackSession]:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return None
        key = self._member_key(session.community_id, session.member_id)
        if self._member_index.get(key) == session_id:
            del self._member_index[key]
        # the heap entry goes stale and is discarded by the next sweep
        return session

    def clear_expired(self) -> int:
        now = self._clock()
        expired = 0
        while self._expirations and self._expirations[0][0] <= now:
            deadline, _, session_id = heapq.heappop(self._expirations)
            session = self._sessions.get(session_id)
            if session is None or session.expires_at != deadline:
                continue
            self._expire(session)
            expired += 1
        if len(self._expirations) > 2 * len(self._sessions) + 64:
            self._compact()
        return expired

    async def start(self) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop(), name="blackjack-session-sweeper")

    async def stop(self) -> None:
        task, self._sweeper = self._sweeper, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _sweep_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.sweep_interval)
                expired = self.clear_expired()
                if expired:
                    logger.info("Expired %d blackjack session(s)", expired)
        except asyncio.CancelledError:
            logger.debug("Blackjack session sweeper cancelled")
            raise

    def _schedule(self, session: BlackjackSession) -> None:
        heapq.heappush(self._expirations, (session.expires_at, next(self._seq), session.id))

    def _compact(self) -> None:
        self._expirations = [(s.expires_at, next(self._seq), s.id) for s in self._sessions.values()]
        heapq.heapify(self._expirations)

    def _expire(self, session: BlackjackSession) -> None:
        self.end_session(session.id)
        wager = session.wager
        if wager.debited > 0 and not wager.settled:
            logger.warning(
                "Blackjack session %s for %s:%s expired; stake of %d forfeited",
                session.id,
                session.community_id,
                session.member_id,
                wager.debited,
            )
        else:
            logger.info("Blackjack session %s expired", session.id)
