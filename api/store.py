"""
In-Memory Registry Store for the Development Backend

This module stands in for the real face-recognition service so the client
can be developed and tested without it. Nothing is persisted; state lives as
long as the app instance.

Recognition is deliberately trivial: an identity "matches" a probe image when
the SHA-256 digest of the probe equals the digest stored at registration.
Images smaller than MIN_FACE_IMAGE_BYTES are treated as containing no face.

Usage:
    store = FaceRegistryStore()
    identity = store.register("Alice", jpeg_bytes)
    matched = store.authenticate(jpeg_bytes, user_id=identity.id)
"""

import hashlib
import logging
import re
import threading
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from core.session import Clock, now_ms

logger = logging.getLogger(__name__)

MIN_FACE_IMAGE_BYTES = 64


class DuplicateIdentityError(ValueError):
    """An identity with the same ID is already registered."""


class NoFaceDetectedError(ValueError):
    """The image does not contain a usable face."""


class UnknownIdentityError(KeyError):
    """The requested identity does not exist."""


def generate_identity_id(name: str) -> str:
    """
    Derive an identity ID from a display name.

    "Jane Smith" -> "jane_smith". Names with no usable characters get a
    random "usr_" + 8 hex ID instead.
    """
    slug = re.sub(r"\s+", "_", name.strip().lower())
    slug = re.sub(r"[^a-z0-9_]", "", slug)
    return slug or f"usr_{uuid.uuid4().hex[:8]}"


@dataclass
class StoredIdentity:
    """An enrolled identity as held by the development backend."""
    id: str
    name: str
    added_at: int
    image_digest: str
    last_authenticated: Optional[int] = None

    def to_record(self) -> Dict[str, object]:
        """Wire representation (see api.schemas.IdentityRecord)."""
        record: Dict[str, object] = {"id": self.id, "name": self.name, "addedAt": self.added_at}
        if self.last_authenticated is not None:
            record["lastAuthenticated"] = self.last_authenticated
        return record


def _digest(image: bytes) -> str:
    return hashlib.sha256(image).hexdigest()


def _check_face(image: bytes) -> None:
    if len(image) < MIN_FACE_IMAGE_BYTES:
        raise NoFaceDetectedError("Failed to extract embedding: no face detected")


class FaceRegistryStore:
    """Thread-safe in-memory identity registry."""

    def __init__(self, clock: Clock = now_ms):
        self.clock = clock
        self._identities: Dict[str, StoredIdentity] = {}
        self._lock = threading.Lock()

    def list_identities(self) -> List[StoredIdentity]:
        with self._lock:
            return sorted(self._identities.values(), key=lambda i: i.added_at)

    def get(self, identity_id: str) -> Optional[StoredIdentity]:
        with self._lock:
            return self._identities.get(identity_id)

    def register(self, name: str, image: bytes) -> StoredIdentity:
        """
        Enroll a new identity.

        Raises:
            DuplicateIdentityError: If the derived ID is already taken.
            NoFaceDetectedError: If the image holds no usable face.
        """
        _check_face(image)
        identity_id = generate_identity_id(name)

        with self._lock:
            if identity_id in self._identities:
                raise DuplicateIdentityError("User already registered")
            identity = StoredIdentity(
                id=identity_id,
                name=name.strip(),
                added_at=self.clock(),
                image_digest=_digest(image),
            )
            self._identities[identity_id] = identity

        logger.info(f"Registered identity {identity_id}")
        return identity

    def authenticate(self, image: bytes, user_id: Optional[str] = None) -> Optional[StoredIdentity]:
        """
        Match a probe image against one identity (1:1) or all of them (1:N).

        Returns:
            The matched identity with lastAuthenticated updated, or None.

        Raises:
            NoFaceDetectedError: If the image holds no usable face.
            UnknownIdentityError: If `user_id` is given but not enrolled.
        """
        _check_face(image)
        digest = _digest(image)

        with self._lock:
            if user_id is not None:
                if user_id not in self._identities:
                    raise UnknownIdentityError(user_id)
                candidates = [self._identities[user_id]]
            else:
                candidates = list(self._identities.values())

            for identity in candidates:
                if identity.image_digest == digest:
                    identity.last_authenticated = self.clock()
                    return identity
        return None

    def remove(self, identity_id: str) -> bool:
        with self._lock:
            return self._identities.pop(identity_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._identities)


@dataclass
class StoredDevice:
    id: str
    name: str
    type: str
    room_id: str
    status: bool
    icon: str = ""


def default_devices() -> List[StoredDevice]:
    """Devices every development backend starts with."""
    return [
        StoredDevice("front_door", "Front Door", "door", "entrance", False, "door-open"),
        StoredDevice("living_room_light", "Living Room Light", "light", "living_room", True, "lightbulb"),
    ]


class DeviceStore:
    """In-memory device states."""

    def __init__(self, devices: Optional[List[StoredDevice]] = None):
        self._devices: Dict[str, StoredDevice] = {
            d.id: d for d in (devices if devices is not None else default_devices())
        }
        self._lock = threading.Lock()

    def list_devices(self, room_id: Optional[str] = None) -> List[StoredDevice]:
        with self._lock:
            return [d for d in self._devices.values() if room_id is None or d.room_id == room_id]

    def get(self, device_id: str) -> Optional[StoredDevice]:
        with self._lock:
            return self._devices.get(device_id)

    def toggle(self, device_id: str) -> bool:
        """
        Flip a device and return its new status.

        Raises:
            KeyError: If the device does not exist.
        """
        with self._lock:
            device = self._devices[device_id]
            device.status = not device.status
            return device.status

    def __len__(self) -> int:
        with self._lock:
            return len(self._devices)
