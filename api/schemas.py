"""
Pydantic Schemas for API Request/Response Models

This module defines the wire contract between the smart-home client and the
backend. The development backend serializes its responses with these models
and the client validates every backend response against them, so a shape
mismatch is caught at the boundary instead of deep inside the engine.

Field names on the wire are camelCase (userId, addedAt, ...); Python code uses
the snake_case attribute names.
"""

from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    """Base model accepting both wire aliases and attribute names."""
    model_config = ConfigDict(populate_by_name=True)


# ============================================================
# Face Recognition Schemas
# ============================================================

class IdentityRecord(WireModel):
    """One enrolled identity as listed by GET /face-recognition/users."""
    id: str = Field(..., min_length=1, description="Backend-assigned identity ID")
    name: str = Field(..., description="Display name supplied at registration")
    added_at: int = Field(..., alias="addedAt", description="Enrollment time, epoch ms")
    last_authenticated: Optional[int] = Field(
        None,
        alias="lastAuthenticated",
        description="Last successful authentication, epoch ms",
    )


class RegisterResponse(WireModel):
    """Response from POST /face-recognition/register."""
    success: bool = Field(..., description="Whether the identity was enrolled")
    user_id: Optional[str] = Field(None, alias="userId", description="ID of the new identity")
    message: Optional[str] = Field(None, description="Human-readable status message")


class AuthenticateResponse(WireModel):
    """Response from POST /face-recognition/authenticate."""
    success: bool = Field(..., description="Backend verdict; authoritative, no client threshold")
    user_id: Optional[str] = Field(None, alias="userId", description="Matched identity ID")
    user_name: Optional[str] = Field(None, alias="userName", description="Matched identity name")
    confidence: Optional[float] = Field(
        None, ge=0.0, le=1.0, description="Match confidence in [0, 1]"
    )
    message: Optional[str] = Field(None, description="Human-readable status message")


class RemoveResponse(WireModel):
    """Response from DELETE /face-recognition/users/{id}."""
    success: bool = Field(..., description="Whether the identity was removed")
    message: Optional[str] = Field(None, description="Human-readable status message")


# ============================================================
# Device Schemas
# ============================================================

DeviceType = Literal[
    "light", "climate", "entertainment", "security", "appliance", "fan", "door"
]


class DeviceRecord(WireModel):
    """A controllable smart-home device."""
    id: str = Field(..., description="Device ID")
    name: str = Field(..., description="Display name")
    type: DeviceType = Field(..., description="Device category")
    room_id: str = Field(..., description="Room the device belongs to")
    status: bool = Field(..., description="True when on / unlocked")
    icon: str = Field("", description="Icon key used by the app")
    value: Optional[float] = Field(None, description="Brightness, temperature, ...")


class ToggleResponse(WireModel):
    """Response from PATCH /devices/{id}."""
    status: Literal["on", "off"] = Field(..., description="Device state after the toggle")


# ============================================================
# Health Check Schemas
# ============================================================

class HealthResponse(WireModel):
    """System health check response."""
    status: str = Field(..., description="Overall status: 'healthy' or 'unhealthy'")
    enrolled_users: int = Field(..., description="Number of enrolled identities")
    devices: int = Field(0, description="Number of registered devices")

