"""
Authentication panel helpers for the Smart-Home Face Gate.

Turns engine state and errors into the text a screen shows. Every failure
falls into one of three remediation categories so the user knows whether to
simply retry, correct their input, or take a better picture.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from core.auth_engine import AuthState, DenialReason, FaceAuthEngine
from core.errors import (
    CaptureError,
    ContractViolation,
    FaceGateError,
    NetworkError,
    PreconditionError,
    ServerError,
    ValidationError,
)
from core.identity_registry import EnrolledIdentity
from core.session import AuthenticationSession

# Backend details that mean the image had no usable face in it
NO_FACE_MARKERS = ("no face", "failed to extract embedding", "face not detected")

NO_FACE_HELP = (
    "Could not detect a clear face in the image. Please ensure:\n"
    "• Your face is clearly visible\n"
    "• There is good lighting\n"
    "• Only one face is in the frame\n"
    "• Your face is not at an extreme angle"
)


class Remediation(Enum):
    """What the user should do about a failure."""
    TRY_AGAIN = "try_again"    # transient; retrying may work
    FIX_INPUT = "fix_input"    # the request itself was wrong
    NO_FACE = "no_face"        # capture quality problem


def _mentions_no_face(detail: Optional[str]) -> bool:
    return bool(detail) and any(marker in detail.lower() for marker in NO_FACE_MARKERS)


def classify_error(error: FaceGateError) -> Remediation:
    """Map an error onto the remediation the user should attempt."""
    if isinstance(error, ServerError):
        if _mentions_no_face(error.detail):
            return Remediation.NO_FACE
        if error.code in (400, 422):
            return Remediation.FIX_INPUT
        return Remediation.TRY_AGAIN
    if isinstance(error, CaptureError):
        return Remediation.NO_FACE
    if isinstance(error, (ValidationError, PreconditionError)):
        return Remediation.FIX_INPUT
    # NetworkError, ContractViolation, ReauthenticationRequired
    return Remediation.TRY_AGAIN


def format_error(error: FaceGateError) -> str:
    """Human-readable message for any face gate error."""
    remediation = classify_error(error)

    if remediation is Remediation.NO_FACE:
        return NO_FACE_HELP
    if isinstance(error, NetworkError):
        return "Could not reach the server. Check your connection and try again."
    if isinstance(error, ServerError):
        if error.code in (400, 422):
            message = "Invalid image data or name. Please try again."
        else:
            message = "Server error. Please try again later."
        if error.detail:
            message += f" Server says: {error.detail}"
        return message
    if isinstance(error, ContractViolation):
        return "The server sent an unexpected response. Please try again."
    return error.message


def format_denial_hint(reason: DenialReason, detail: Optional[str] = None) -> str:
    """Suggested next step after a denied verification."""
    if reason is DenialReason.NETWORK:
        return "Check your connection and try again."
    if reason is DenialReason.SERVER_ERROR and _mentions_no_face(detail):
        return NO_FACE_HELP
    if reason is DenialReason.NO_MATCH:
        return "Face not recognized. Make sure you selected your own profile and try again."
    return "Please try again."


def format_engine_status(engine: FaceAuthEngine) -> str:
    """Status line for the authentication screen."""
    state = engine.state

    if state is AuthState.GRANTED:
        session = engine.session
        return f"✅ Welcome back, {session.identity_name}!"
    if state is AuthState.DENIED and engine.denial is not None:
        denial = engine.denial
        return f"❌ Authentication failed: {denial.message}\n{format_denial_hint(denial.reason, denial.detail)}"
    if state is AuthState.VERIFYING:
        return "Verifying..."
    if state is AuthState.AWAITING_CAPTURE:
        return "Look at the camera"
    if state is AuthState.EXPIRED:
        return "Session expired. Please authenticate again."
    return "Select a profile to authenticate"


def format_session_remaining(session: AuthenticationSession, now: int) -> str:
    """Remaining session time as m:ss, or an empty string when not authenticated."""
    remaining_ms = session.remaining_ms(now)
    if remaining_ms <= 0:
        return ""
    total_seconds = (remaining_ms + 999) // 1000
    return f"{total_seconds // 60}:{total_seconds % 60:02d}"


def format_identity(identity: EnrolledIdentity) -> str:
    """One list row describing an enrolled identity."""
    added = datetime.fromtimestamp(identity.enrolled_at / 1000).strftime("%Y-%m-%d")
    line = f"{identity.display_name} (ID: {identity.id} | Added: {added}"
    if identity.last_authenticated_at is not None:
        last = datetime.fromtimestamp(identity.last_authenticated_at / 1000).strftime("%Y-%m-%d %H:%M")
        line += f" | Last auth: {last}"
    return line + ")"
