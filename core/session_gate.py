"""
Session Gate

The single authorization check every protected action goes through. A door
unlock/lock is only sent after authorize() returns True *at that moment*;
the check is never cached from an earlier render because the session can
expire in between.

The gate is also where identity removal is wired to session invalidation:
removing the identity that holds the active session drops the session, and
so does a registry refresh that no longer lists it.
"""

import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

from client.api_client import DeviceClient, DeviceState
from core.auth_engine import AuthState, FaceAuthEngine
from core.errors import PreconditionError, ReauthenticationRequired, ServerError
from core.identity_registry import EnrolledIdentity, IdentityRegistryClient, RemoveResult
from core.session import AuthenticationSession, Clock

logger = logging.getLogger(__name__)

T = TypeVar("T")


def authorize(session: AuthenticationSession, now: int) -> bool:
    """True iff the session is authenticated and `now` is before its expiry."""
    return session.is_valid(now)


class SessionGate:
    """
    Guards protected actions behind the engine's current session.

    Args:
        engine: The authentication engine whose session is checked.
        devices: Device client used for door actions (optional).
        clock: Millisecond clock; defaults to the engine's clock.
    """

    def __init__(
        self,
        engine: FaceAuthEngine,
        devices: Optional[DeviceClient] = None,
        clock: Optional[Clock] = None,
    ):
        self.engine = engine
        self.devices = devices
        self.clock = clock or engine.clock

    @property
    def registry(self) -> IdentityRegistryClient:
        return self.engine.registry

    def authorize(self, session: Optional[AuthenticationSession] = None) -> bool:
        """
        Check a session right now.

        Args:
            session: Session to check; defaults to the engine's current session.
        """
        if session is None:
            session = self.engine.session
        return authorize(session, self.clock())

    async def run_protected(self, action: Callable[[], Awaitable[T]], description: str = "action") -> T:
        """
        Run `action` only if the current session is valid.

        Raises:
            ReauthenticationRequired: If there is no valid session.
        """
        session = self.engine.session
        if not self.authorize(session):
            logger.warning(f"Refused {description}: no valid session")
            if self.engine.state is AuthState.EXPIRED:
                raise ReauthenticationRequired("Your session has expired. Please authenticate again.")
            raise ReauthenticationRequired("Please authenticate with Face ID first.")

        logger.info(f"Authorized {description} for {session.identity_id}")
        return await action()

    async def toggle_door(self, device_id: str) -> DeviceState:
        """Lock/unlock a door device, gated by the current session."""
        if self.devices is None:
            raise PreconditionError("No device client configured")
        return await self.run_protected(
            lambda: self.devices.toggle_device(device_id),
            description=f"toggle of door {device_id}",
        )

    async def remove_identity(self, identity_id: str) -> RemoveResult:
        """
        Remove an identity from the registry and drop any session it holds.

        The session is invalidated once the backend confirms removal, or
        answers 404 because the identity is already gone.
        """
        try:
            result = await self.registry.remove_identity(identity_id)
        except ServerError as e:
            if e.code != 404:
                raise
            logger.info(f"Identity {identity_id} already removed on the backend")
            self.registry.discard(identity_id)
            result = RemoveResult(success=True, message=e.detail or "Identity was already removed")

        if result.success and self.engine.invalidate_identity(identity_id):
            logger.info(f"Active session invalidated: identity {identity_id} was removed")
        return result

    async def refresh_identities(self) -> List[EnrolledIdentity]:
        """
        Refresh the registry snapshot and drop any session or selection held
        by an identity that is no longer enrolled.
        """
        identities = await self.registry.list_identities()
        if self.engine.reconcile_identities(i.id for i in identities):
            logger.info("Active session invalidated: identity is no longer enrolled")
        return identities
