"""
Face Identity Registry Client

This module talks to the backend's face-recognition endpoints:

- GET    /face-recognition/users          list enrolled identities
- POST   /face-recognition/register       enroll a new identity
- DELETE /face-recognition/users/{id}     remove an identity
- POST   /face-recognition/authenticate   verify a capture

The backend owns the registry. The client keeps only a read-through snapshot
of the last list_identities() call; registration never inserts locally, the
new identity shows up on the next refresh.

Responses are validated against api.schemas immediately; anything that does
not match raises ContractViolation.

Usage:
    registry = IdentityRegistryClient(api)
    identities = await registry.list_identities()
    result = await registry.register_identity("Alice", CaptureAttempt(jpeg_bytes))
"""

import logging
from dataclasses import dataclass, replace
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError as SchemaError

from api.schemas import (
    AuthenticateResponse,
    IdentityRecord,
    RegisterResponse,
    RemoveResponse,
)
from client.api_client import SmartHomeAPI
from core.capture import CaptureAttempt, normalize_payload
from core.errors import ContractViolation, ValidationError

logger = logging.getLogger(__name__)

_identity_list = TypeAdapter(List[IdentityRecord])


@dataclass(frozen=True)
class EnrolledIdentity:
    """
    An enrolled face record.

    Attributes:
        id: Backend-assigned identifier.
        display_name: Name supplied at registration.
        enrolled_at: Registration time (epoch ms), never changes.
        last_authenticated_at: Last successful authentication (epoch ms).
    """
    id: str
    display_name: str
    enrolled_at: int
    last_authenticated_at: Optional[int] = None

    @classmethod
    def from_record(cls, record: IdentityRecord) -> "EnrolledIdentity":
        return cls(
            id=record.id,
            display_name=record.name,
            enrolled_at=record.added_at,
            last_authenticated_at=record.last_authenticated,
        )


@dataclass
class RegisterResult:
    """Outcome of a registration call."""
    success: bool
    identity_id: Optional[str] = None
    message: Optional[str] = None


@dataclass
class RemoveResult:
    """Outcome of a removal call."""
    success: bool
    message: Optional[str] = None


class IdentityRegistryClient:
    """
    CRUD-style access to the backend identity registry.

    Raises ValidationError for bad local input (before any request),
    NetworkError / ServerError for backend failures and ContractViolation
    for malformed responses.
    """

    def __init__(self, api: SmartHomeAPI):
        self.api = api
        self._snapshot: List[EnrolledIdentity] = []

    @property
    def identities(self) -> List[EnrolledIdentity]:
        """Identities from the most recent list_identities() call."""
        return list(self._snapshot)

    def get_identity(self, identity_id: str) -> Optional[EnrolledIdentity]:
        """Look up an identity in the current snapshot."""
        for identity in self._snapshot:
            if identity.id == identity_id:
                return identity
        return None

    async def list_identities(self) -> List[EnrolledIdentity]:
        """
        Fetch the current registry and replace the local snapshot.

        Returns:
            List of enrolled identities, in backend order.
        """
        data = await self.api.get_json("/face-recognition/users")
        try:
            records = _identity_list.validate_python(data)
        except SchemaError as e:
            raise ContractViolation(f"Malformed identity list: {e}") from e

        self._snapshot = [EnrolledIdentity.from_record(r) for r in records]
        logger.debug(f"Registry snapshot refreshed: {len(self._snapshot)} identities")
        return self.identities

    async def register_identity(self, name: str, capture: Optional[CaptureAttempt]) -> RegisterResult:
        """
        Enroll a new identity from one face capture.

        Args:
            name: Display name for the identity.
            capture: A registration capture (no target identity).

        Returns:
            RegisterResult; the new identity appears in the next list_identities().

        Raises:
            ValidationError: If the name is blank or the image is missing/invalid.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Please enter a name")
        if capture is None:
            raise ValidationError("Please capture an image first")
        if not capture.is_registration:
            raise ValidationError("A registration capture cannot target an existing identity")
        image = normalize_payload(capture.image_payload)

        logger.info(f"Registering identity '{name}' ({len(image)} bytes)")
        data = await self.api.request_json(
            "POST",
            "/face-recognition/register",
            data={"name": name},
            files={"image": ("capture.jpg", image, "image/jpeg")},
        )
        try:
            response = RegisterResponse.model_validate(data)
        except SchemaError as e:
            raise ContractViolation(f"Malformed register response: {e}") from e

        if response.success:
            logger.info(f"Identity '{name}' registered as {response.user_id}")
        else:
            logger.warning(f"Registration of '{name}' rejected: {response.message}")

        return RegisterResult(
            success=response.success,
            identity_id=response.user_id,
            message=response.message,
        )

    async def remove_identity(self, identity_id: str) -> RemoveResult:
        """
        Remove one identity from the backend registry.

        This does not touch any authentication session. Use
        SessionGate.remove_identity() to also invalidate a session held by
        the removed identity.
        """
        if not identity_id:
            raise ValidationError("No identity selected")

        data = await self.api.request_json("DELETE", f"/face-recognition/users/{identity_id}")
        try:
            response = RemoveResponse.model_validate(data)
        except SchemaError as e:
            raise ContractViolation(f"Malformed remove response: {e}") from e

        if response.success:
            # Confirmed by the backend, so the snapshot may drop it
            self._snapshot = [i for i in self._snapshot if i.id != identity_id]
            logger.info(f"Identity {identity_id} removed")
        else:
            logger.warning(f"Removal of {identity_id} rejected: {response.message}")

        return RemoveResult(success=response.success, message=response.message)

    def discard(self, identity_id: str) -> bool:
        """
        Drop an identity the backend reported as no longer existing.

        Returns:
            True if the identity was in the snapshot.
        """
        before = len(self._snapshot)
        self._snapshot = [i for i in self._snapshot if i.id != identity_id]
        return len(self._snapshot) != before

    async def verify(self, capture: CaptureAttempt) -> AuthenticateResponse:
        """
        Submit a capture to the authenticate endpoint.

        Args:
            capture: The capture, optionally constrained to one identity.

        Returns:
            The validated backend verdict. Interpreting it is the engine's job.
        """
        image = normalize_payload(capture.image_payload)
        form = {}
        if capture.target_identity_id is not None:
            form["user_id"] = capture.target_identity_id

        data = await self.api.request_json(
            "POST",
            "/face-recognition/authenticate",
            data=form,
            files={"image": ("capture.jpg", image, "image/jpeg")},
        )
        try:
            return AuthenticateResponse.model_validate(data)
        except SchemaError as e:
            raise ContractViolation(f"Malformed authenticate response: {e}") from e

    def mark_authenticated(self, identity_id: str, at: int) -> bool:
        """
        Record a successful authentication in the local snapshot.

        Returns:
            True if the identity was in the snapshot and got updated.
        """
        for index, identity in enumerate(self._snapshot):
            if identity.id == identity_id:
                self._snapshot[index] = replace(identity, last_authenticated_at=at)
                return True
        return False
