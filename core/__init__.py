"""
Core Module for the Smart-Home Face Gate

This package contains the face authentication flow: the identity registry
client, the authentication engine state machine, the session it grants and
the gate that protected actions go through.

Main components:
    - config: Configuration loading and management
    - errors: Error taxonomy surfaced to callers
    - capture: Capture attempts and image capture providers
    - identity_registry: Backend identity registry client
    - session: Authentication session and its single-writer store
    - auth_engine: Capture -> verify -> grant state machine
    - session_gate: Authorization of protected actions

The registry client, engine and gate depend on client.api_client and are
imported from their modules directly.

Usage:
    from core.identity_registry import IdentityRegistryClient
    from core.auth_engine import FaceAuthEngine
    from core.session_gate import SessionGate
"""

from core.config import (
    get_config,
    get_section,
    get_api_config,
    get_session_config,
    get_devices_config,
    configure_logging,
)

from core.errors import (
    FaceGateError,
    PreconditionError,
    ValidationError,
    CaptureError,
    NetworkError,
    ServerError,
    ContractViolation,
    ReauthenticationRequired,
)

from core.capture import (
    CaptureAttempt,
    ImageCaptureProvider,
    StaticCaptureProvider,
    FileCaptureProvider,
)

from core.session import (
    SESSION_DURATION_MS,
    AuthenticationSession,
    SessionStore,
)

__all__ = [
    # Configuration
    "get_config",
    "get_section",
    "get_api_config",
    "get_session_config",
    "get_devices_config",
    "configure_logging",
    # Errors
    "FaceGateError",
    "PreconditionError",
    "ValidationError",
    "CaptureError",
    "NetworkError",
    "ServerError",
    "ContractViolation",
    "ReauthenticationRequired",
    # Capture
    "CaptureAttempt",
    "ImageCaptureProvider",
    "StaticCaptureProvider",
    "FileCaptureProvider",
    # Session
    "SESSION_DURATION_MS",
    "AuthenticationSession",
    "SessionStore",
]
