"""
UI helper components for the Smart-Home Face Gate.
"""

from .auth_panel import (
    Remediation,
    classify_error,
    format_error,
    format_denial_hint,
    format_engine_status,
    format_session_remaining,
    format_identity,
)

__all__ = [
    "Remediation",
    "classify_error",
    "format_error",
    "format_denial_hint",
    "format_engine_status",
    "format_session_remaining",
    "format_identity",
]
