"""Blackjack domain specific exceptions."""


class BlackjackError(Exception):
    """Base class for blackjack domain errors."""


class EngineStateError(BlackjackError):
    """Raised when an action is not legal in the game's current state."""


class SessionError(BlackjackError):
    """Base class for session store errors."""


class SessionAlreadyActiveError(SessionError):
    """Raised when a member already owns a live session."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"member already has an active session: {session_id}")
        self.session_id = session_id


class SettlementError(SessionError):
    """Raised when a session is settled twice or before its game has finished."""
