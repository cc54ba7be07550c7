"""
Face Authentication Engine

This module implements the state machine for one face authentication attempt
and the lifetime of the resulting session:

    IDLE --select_identity--> AWAITING_CAPTURE --capture_received--> VERIFYING
    VERIFYING --success--> GRANTED --(time passes)--> EXPIRED
    VERIFYING --failure / transport error / bad response--> DENIED
    DENIED --acknowledge_denial--> IDLE

Rules enforced here:
- At most one verification is in flight; a capture arriving while VERIFYING
  is dropped, not queued.
- A verification result is applied only if its attempt is still the current
  one. clear_session(), invalidate_identity() and close() all retire the
  current attempt, so a late response cannot resurrect a session.
- success=true without a matched identity never grants; it is denied as a
  contract violation.
- The backend's success flag is authoritative; confidence is recorded but
  never thresholded here.
- Expiry is checked on every read of state/session and by a one-shot timer
  armed at grant time, so an expired session is never reported as GRANTED.

Usage:
    engine = FaceAuthEngine(registry)
    await registry.list_identities()
    engine.select_identity("alice")
    await engine.capture_received(jpeg_bytes)
    if engine.state is AuthState.GRANTED:
        ...
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from core.capture import CaptureAttempt, ImageCaptureProvider, ImagePayload, normalize_payload
from core.config import get_session_config
from core.errors import (
    ContractViolation,
    NetworkError,
    PreconditionError,
    ServerError,
)
from core.identity_registry import IdentityRegistryClient
from core.session import (
    SESSION_DURATION_MS,
    AuthenticationSession,
    Clock,
    SessionStore,
    now_ms,
)

logger = logging.getLogger(__name__)

DEFAULT_VERIFY_TIMEOUT_SEC = 30.0


class AuthState(Enum):
    """States of the authentication engine."""
    IDLE = "idle"
    AWAITING_CAPTURE = "awaiting_capture"
    VERIFYING = "verifying"
    GRANTED = "granted"
    DENIED = "denied"
    EXPIRED = "expired"


class DenialReason(Enum):
    """Why a verification ended in DENIED."""
    NO_MATCH = "no_match"                   # backend said the face does not match
    NETWORK = "network"                     # transport failure or timeout
    SERVER_ERROR = "server_error"           # 4xx/5xx, e.g. no face detected
    CONTRACT_VIOLATION = "contract_violation"


@dataclass
class Denial:
    """Details of the last denied attempt, kept until acknowledged."""
    reason: DenialReason
    message: str
    detail: Optional[str] = None


class FaceAuthEngine:
    """
    Orchestrates capture -> verify -> session grant.

    Owns the SessionStore it is given (or creates one). Other components may
    read store.current but only the engine writes it.
    """

    def __init__(
        self,
        registry: IdentityRegistryClient,
        store: Optional[SessionStore] = None,
        clock: Clock = now_ms,
        verify_timeout_sec: float = DEFAULT_VERIFY_TIMEOUT_SEC,
    ):
        self.registry = registry
        self.store = store or SessionStore()
        self.clock = clock
        self.verify_timeout_sec = verify_timeout_sec

        self._state = AuthState.IDLE
        self._target_identity_id: Optional[str] = None
        self._denial: Optional[Denial] = None
        self._attempt = 0
        self._closed = False
        self._expiry_handle: Optional[asyncio.TimerHandle] = None
        self.last_confidence: Optional[float] = None

    @classmethod
    def from_config(
        cls,
        registry: IdentityRegistryClient,
        clock: Clock = now_ms,
    ) -> "FaceAuthEngine":
        """Build an engine using the "session" configuration section."""
        session_config = get_session_config()
        store = SessionStore(duration_ms=int(session_config.get("duration_ms", SESSION_DURATION_MS)))
        return cls(
            registry,
            store=store,
            clock=clock,
            verify_timeout_sec=float(
                session_config.get("verify_timeout_sec", DEFAULT_VERIFY_TIMEOUT_SEC)
            ),
        )

    # ==================== Read-only views ====================

    @property
    def state(self) -> AuthState:
        self.tick()
        return self._state

    @property
    def session(self) -> AuthenticationSession:
        self.tick()
        return self.store.current

    @property
    def denial(self) -> Optional[Denial]:
        return self._denial

    @property
    def target_identity_id(self) -> Optional[str]:
        return self._target_identity_id

    @property
    def is_closed(self) -> bool:
        return self._closed

    # ==================== Transitions ====================

    def tick(self) -> bool:
        """
        Expire the session if its time is up.

        Returns:
            True if this call moved the engine from GRANTED to EXPIRED.
        """
        if self._state is not AuthState.GRANTED:
            return False

        session = self.store.current
        if session.is_valid(self.clock()):
            return False

        self._cancel_expiry_timer()
        self.store.reset("expired")
        self._state = AuthState.EXPIRED
        logger.info("Session expired")
        return True

    def select_identity(self, identity_id: str) -> None:
        """
        Choose the identity the next capture is verified against.

        Raises:
            PreconditionError: If no identities are enrolled, the identity is
                               unknown, or the engine is busy / holding a result.
        """
        self._ensure_open()
        state = self.state

        if not self.registry.identities:
            raise PreconditionError("no identities")
        if state is AuthState.VERIFYING:
            raise PreconditionError("A verification is already in progress")
        if state is AuthState.DENIED:
            raise PreconditionError("Acknowledge the previous result first")
        if state is AuthState.GRANTED:
            raise PreconditionError("Already authenticated; clear the session first")
        if self.registry.get_identity(identity_id) is None:
            raise PreconditionError(f"Unknown identity: {identity_id}")

        self._target_identity_id = identity_id
        self._state = AuthState.AWAITING_CAPTURE
        logger.debug(f"Awaiting capture for {identity_id}")

    async def capture_received(self, payload: ImagePayload) -> Optional[AuthState]:
        """
        Verify one capture against the selected identity.

        Args:
            payload: Image bytes, Base64 string or data URL.

        Returns:
            The resulting state (GRANTED or DENIED), or None if the capture
            was dropped because a verification is already running, or the
            result was discarded because the attempt was retired meanwhile.

        Raises:
            PreconditionError: If no identity has been selected.
            ValidationError: If the payload is missing or not decodable.
        """
        self._ensure_open()
        if self._state is AuthState.VERIFYING:
            logger.warning("Capture dropped: a verification is already in flight")
            return None
        if self.state is not AuthState.AWAITING_CAPTURE:
            raise PreconditionError("Select an identity before capturing")

        # Rejected locally, state stays AWAITING_CAPTURE
        normalize_payload(payload)

        capture = CaptureAttempt(payload, target_identity_id=self._target_identity_id)
        self._attempt += 1
        token = self._attempt
        self._state = AuthState.VERIFYING
        logger.info(f"Verifying capture against {capture.target_identity_id} (attempt {token})")

        try:
            response = await asyncio.wait_for(
                self.registry.verify(capture), timeout=self.verify_timeout_sec
            )
        except asyncio.TimeoutError:
            return self._finish_denied(
                token,
                Denial(DenialReason.NETWORK, f"Verification timed out after {self.verify_timeout_sec}s"),
            )
        except NetworkError as e:
            return self._finish_denied(token, Denial(DenialReason.NETWORK, e.message))
        except ServerError as e:
            return self._finish_denied(
                token, Denial(DenialReason.SERVER_ERROR, e.message, detail=e.detail)
            )
        except ContractViolation as e:
            logger.error(f"Verify response rejected: {e.message}")
            return self._finish_denied(token, Denial(DenialReason.CONTRACT_VIOLATION, e.message))
        except BaseException:
            # Cancelled or unexpected failure: back to a retryable state
            if self._is_current(token):
                self._state = AuthState.AWAITING_CAPTURE
            raise

        if not self._is_current(token):
            logger.info(f"Discarding result of retired attempt {token}")
            return None

        if not response.success:
            return self._finish_denied(
                token,
                Denial(DenialReason.NO_MATCH, response.message or "Face not recognized. Please try again."),
            )

        if not response.user_id or not response.user_name:
            logger.error("Backend reported success without an identity; denying")
            return self._finish_denied(
                token,
                Denial(DenialReason.CONTRACT_VIOLATION, "Verification succeeded without an identity"),
            )

        target = capture.target_identity_id
        if target is not None and response.user_id != target:
            logger.error(f"Backend matched {response.user_id} while verifying {target}; denying")
            return self._finish_denied(
                token,
                Denial(DenialReason.CONTRACT_VIOLATION, "Verification matched a different identity"),
            )

        return self._grant(response.user_id, response.user_name, response.confidence)

    async def authenticate(self, provider: ImageCaptureProvider) -> Optional[AuthState]:
        """
        Capture from `provider` and verify it.

        A CaptureError from the provider propagates and leaves the engine in
        AWAITING_CAPTURE so the user can retry.
        """
        self._ensure_open()
        if self.state is not AuthState.AWAITING_CAPTURE:
            raise PreconditionError("Select an identity before capturing")

        payload = await provider.capture()
        return await self.capture_received(payload)

    def acknowledge_denial(self) -> None:
        """Dismiss a DENIED result and return to IDLE."""
        if self._state is not AuthState.DENIED:
            raise PreconditionError("Nothing to acknowledge")
        self._denial = None
        self._target_identity_id = None
        self._state = AuthState.IDLE

    def clear_session(self) -> None:
        """Drop the session and any in-flight attempt (e.g. the screen navigates away)."""
        self._retire_attempt()
        self.store.reset("cleared")
        self._denial = None
        self._target_identity_id = None
        self._state = AuthState.IDLE

    def invalidate_identity(self, identity_id: str) -> bool:
        """
        Forget everything tied to an identity that no longer exists.

        Returns:
            True if an active session belonged to the identity and was dropped.
        """
        session_dropped = False
        session = self.store.current
        if session.is_authenticated and session.identity_id == identity_id:
            self._cancel_expiry_timer()
            self.store.reset("identity removed")
            session_dropped = True
            if self._state is AuthState.GRANTED:
                self._state = AuthState.IDLE

        if self._target_identity_id == identity_id and self._state in (
            AuthState.AWAITING_CAPTURE,
            AuthState.VERIFYING,
        ):
            self._retire_attempt()
            self._target_identity_id = None
            self._state = AuthState.IDLE

        return session_dropped

    def reconcile_identities(self, identity_ids: Iterable[str]) -> bool:
        """
        Forget the session holder and the selected target if they are no
        longer enrolled (e.g. removed on another device).

        Args:
            identity_ids: IDs currently enrolled on the backend.

        Returns:
            True if the active session was dropped.
        """
        known = set(identity_ids)
        session_dropped = False

        session = self.store.current
        if session.is_authenticated and session.identity_id not in known:
            session_dropped = self.invalidate_identity(session.identity_id)

        target = self._target_identity_id
        if target is not None and target not in known:
            self.invalidate_identity(target)

        return session_dropped

    def close(self) -> None:
        """
        Tear the engine down.

        Any verification still in flight is ignored when it completes. The
        session in the store is left as is; its expiry is still enforced by
        SessionGate.authorize().
        """
        self._closed = True
        self._retire_attempt()

    # ==================== Internals ====================

    def _ensure_open(self) -> None:
        if self._closed:
            raise PreconditionError("Authentication engine has been closed")

    def _is_current(self, token: int) -> bool:
        return not self._closed and token == self._attempt

    def _retire_attempt(self) -> None:
        self._attempt += 1
        self._cancel_expiry_timer()

    def _finish_denied(self, token: int, denial: Denial) -> Optional[AuthState]:
        if not self._is_current(token):
            logger.info(f"Discarding result of retired attempt {token}")
            return None

        self._denial = denial
        self._state = AuthState.DENIED
        logger.info(f"Authentication denied ({denial.reason.value}): {denial.message}")
        return self._state

    def _grant(self, identity_id: str, identity_name: str, confidence: Optional[float]) -> AuthState:
        at = self.clock()
        session = self.store.grant(identity_id, identity_name, at)
        self.last_confidence = confidence
        self._denial = None
        self._state = AuthState.GRANTED
        self._arm_expiry_timer(session)

        try:
            self.registry.mark_authenticated(identity_id, at)
        except Exception as e:
            # Bookkeeping only; the grant stands
            logger.warning(f"Could not record authentication time for {identity_id}: {e}")

        logger.info(f"Authenticated as {identity_name} ({identity_id}), confidence={confidence}")
        return self._state

    def _arm_expiry_timer(self, session: AuthenticationSession) -> None:
        self._cancel_expiry_timer()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        delay_sec = max(0, session.expires_at - self.clock()) / 1000.0
        self._expiry_handle = loop.call_later(delay_sec, self._on_expiry_timer, session)

    def _on_expiry_timer(self, session: AuthenticationSession) -> None:
        self._expiry_handle = None
        # The loop may fire a little early; re-arm until the session is really over
        if not self.tick() and self._state is AuthState.GRANTED and self.store.current is session:
            self._arm_expiry_timer(session)

    def _cancel_expiry_timer(self) -> None:
        if self._expiry_handle is not None:
            self._expiry_handle.cancel()
            self._expiry_handle = None
