"""
Smart-home client layer for the Smart-Home Face Gate.

- api_client: httpx-based REST client (live or in-process mock backend)
- components: presentation helpers for the authentication screens
"""

from client.api_client import (
    SmartHomeAPI,
    ConnectionMode,
    DeviceClient,
    DeviceState,
    get_api_client,
)

__all__ = [
    "SmartHomeAPI",
    "ConnectionMode",
    "DeviceClient",
    "DeviceState",
    "get_api_client",
]
