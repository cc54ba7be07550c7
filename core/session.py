"""
Authentication Session State

This module holds the client-side record that an identity was recently
verified, and the single-writer container that owns it.

    AuthenticationSession   immutable snapshot (authenticated or not)
    SessionStore            the one place the current session lives

Only the authentication engine calls SessionStore.grant() / reset(); screens
and the session gate read SessionStore.current. Sharing one store between
several readers is how multiple screens see the same session.

Timestamps are epoch milliseconds throughout.
"""

import time
import logging
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# 5 minutes
SESSION_DURATION_MS = 300_000

Clock = Callable[[], int]


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class AuthenticationSession:
    """
    Snapshot of the authentication session.

    Attributes:
        is_authenticated: True once a verification succeeded.
        identity_id: ID of the authenticated identity.
        identity_name: Display name of the authenticated identity.
        authenticated_at: Grant time (epoch ms).
        expires_at: authenticated_at + session duration (epoch ms).
    """
    is_authenticated: bool = False
    identity_id: Optional[str] = None
    identity_name: Optional[str] = None
    authenticated_at: Optional[int] = None
    expires_at: Optional[int] = None

    def is_valid(self, now: int) -> bool:
        """True iff the session is authenticated and has not yet expired at `now`."""
        return (
            self.is_authenticated
            and self.expires_at is not None
            and now < self.expires_at
        )

    def remaining_ms(self, now: int) -> int:
        """Milliseconds until expiry, 0 if already expired or unauthenticated."""
        if not self.is_valid(now):
            return 0
        return self.expires_at - now


UNAUTHENTICATED = AuthenticationSession()


class SessionStore:
    """
    Single-writer holder of the current AuthenticationSession.

    Mutation goes through grant() and reset() only; each call swaps in a
    new frozen snapshot so readers never observe a half-written session.
    """

    def __init__(self, duration_ms: int = SESSION_DURATION_MS):
        if duration_ms <= 0:
            raise ValueError(f"duration_ms must be positive, got {duration_ms}")
        self.duration_ms = duration_ms
        self._current: AuthenticationSession = UNAUTHENTICATED

    @property
    def current(self) -> AuthenticationSession:
        return self._current

    def grant(self, identity_id: str, identity_name: str, at: int) -> AuthenticationSession:
        """Replace the current session with a fresh authenticated one."""
        self._current = AuthenticationSession(
            is_authenticated=True,
            identity_id=identity_id,
            identity_name=identity_name,
            authenticated_at=at,
            expires_at=at + self.duration_ms,
        )
        logger.info(
            f"Session granted to {identity_id} until {self._current.expires_at}"
        )
        return self._current

    def reset(self, reason: str) -> None:
        """Drop the current session."""
        if self._current.is_authenticated:
            logger.info(f"Session for {self._current.identity_id} reset ({reason})")
        self._current = UNAUTHENTICATED
