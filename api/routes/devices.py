"""
Device API Routes

This module provides the device endpoints of the development backend:
- GET /devices: List devices (optional ?roomId=)
- GET /devices/{device_id}: Get one device
- PATCH /devices/{device_id}: Toggle a device on/off (doors: unlocked/locked)
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.schemas import DeviceRecord, ToggleResponse
from api.store import DeviceStore, StoredDevice

router = APIRouter(prefix="/devices", tags=["devices"])


def get_device_store(request: Request) -> DeviceStore:
    return request.app.state.device_store


def _to_record(device: StoredDevice) -> DeviceRecord:
    return DeviceRecord(
        id=device.id,
        name=device.name,
        type=device.type,
        room_id=device.room_id,
        status=device.status,
        icon=device.icon,
    )


@router.get("", response_model=List[DeviceRecord], response_model_exclude_none=True)
async def list_devices(
    room_id: Optional[str] = Query(None, alias="roomId"),
    store: DeviceStore = Depends(get_device_store),
):
    """List devices, optionally restricted to one room."""
    return [_to_record(d) for d in store.list_devices(room_id)]


@router.get("/{device_id}", response_model=DeviceRecord, response_model_exclude_none=True)
async def get_device(device_id: str, store: DeviceStore = Depends(get_device_store)):
    device = store.get(device_id)
    if device is None:
        raise HTTPException(status_code=404, detail=f"Device {device_id} not found")
    return _to_record(device)


@router.patch("/{device_id}", response_model=ToggleResponse)
async def toggle_device(device_id: str, store: DeviceStore = Depends(get_device_store)):
    """Flip the device and report its new state."""
    try:
        status = store.toggle(device_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Device {device_id} not found")
    return ToggleResponse(status="on" if status else "off")
