"""
API client for the Smart-Home Face Gate.

Handles REST communication with the smart-home backend over httpx.
Includes mock mode for development without backend: requests are served by
the in-process development app (api.app) through httpx.ASGITransport.

Every httpx exception is converted here into the core error taxonomy, so
callers only ever see NetworkError, ServerError or ContractViolation.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError as SchemaError

from api.schemas import DeviceRecord, ToggleResponse
from core.config import get_api_config
from core.errors import ContractViolation, NetworkError, ServerError

logger = logging.getLogger(__name__)


class ConnectionMode(Enum):
    """API connection mode."""
    MOCK = "mock"          # In-process development backend (no server needed)
    LIVE = "live"          # Real backend connection


def _extract_detail(response: httpx.Response) -> Optional[str]:
    """Pull the diagnostic reason out of an error response, if any."""
    try:
        data = response.json()
    except ValueError:
        text = response.text.strip()
        return text or None

    if isinstance(data, dict):
        for key in ("detail", "message", "error"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
            if value:
                # FastAPI validation errors come back as a list of dicts
                return str(value)
    return None


class SmartHomeAPI:
    """
    Async client for the smart-home backend.

    Supports both live (real backend) and mock (in-process) modes.

    Usage:
        async with SmartHomeAPI(base_url="http://localhost:8000/v1") as api:
            users = await api.get_json("/face-recognition/users")
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000/v1",
        mode: ConnectionMode = ConnectionMode.LIVE,
        timeout_sec: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.mode = mode
        self.timeout_sec = timeout_sec

        if transport is None and mode == ConnectionMode.MOCK:
            from api.app import create_app
            prefix = httpx.URL(self.base_url).path.rstrip("/")
            transport = httpx.ASGITransport(app=create_app(prefix=prefix))
            logger.info("Using in-process development backend (MOCK mode)")

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout_sec,
            transport=transport,
        )

    async def __aenter__(self) -> "SmartHomeAPI":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    @staticmethod
    def _normalize_path(path: str) -> str:
        # A trailing slash makes some backends answer with a redirect
        if len(path) > 1 and path.endswith("/"):
            path = path.rstrip("/")
        return path

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Send a request and map failures onto the error taxonomy.

        Args:
            method: HTTP method.
            path: Path relative to the base URL.
            **kwargs: Passed through to httpx (json, data, files, params).

        Returns:
            The successful (2xx) response.

        Raises:
            NetworkError: On timeout, transport failure or an unreadable response.
            ServerError: On a 4xx/5xx response.
        """
        path = self._normalize_path(path)
        logger.debug(f"{method} {path}")

        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(f"{method} {path} timed out: {e}")
            raise NetworkError(f"Request timed out after {self.timeout_sec}s") from e
        except httpx.TransportError as e:
            logger.warning(f"{method} {path} transport error: {e}")
            raise NetworkError(f"Could not reach backend: {e}") from e
        except httpx.RequestError as e:
            # Undecodable body, redirect loop, ...
            logger.warning(f"{method} {path} failed: {e!r}")
            raise NetworkError(f"Request to backend failed: {e}") from e

        if response.is_error:
            detail = _extract_detail(response)
            logger.warning(f"{method} {path} failed: {response.status_code} {detail or ''}")
            raise ServerError(response.status_code, detail)

        return response

    async def request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and decode the JSON body of the successful response."""
        response = await self.request(method, path, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise ContractViolation(
                f"{method} {path} returned a non-JSON body"
            ) from e

    async def get_json(self, path: str, **kwargs: Any) -> Any:
        return await self.request_json("GET", path, **kwargs)

    async def check_backend_available(self) -> bool:
        """Check if the backend server is reachable."""
        try:
            await self.request("GET", "/health")
            return True
        except (NetworkError, ServerError):
            return False


_device_list = TypeAdapter(List[DeviceRecord])


@dataclass
class DeviceState:
    """State of a device after a toggle."""
    id: str
    status: bool  # True = on / unlocked


class DeviceClient:
    """Access to the smart-home device endpoints."""

    def __init__(self, api: SmartHomeAPI):
        self.api = api

    async def list_devices(self, room_id: Optional[str] = None) -> List[DeviceRecord]:
        """List devices, optionally filtered by room."""
        params: Dict[str, str] = {"roomId": room_id} if room_id else {}
        data = await self.api.get_json("/devices", params=params)
        try:
            return _device_list.validate_python(data)
        except SchemaError as e:
            raise ContractViolation(f"Malformed device list: {e}") from e

    async def get_device(self, device_id: str) -> DeviceRecord:
        data = await self.api.get_json(f"/devices/{device_id}")
        try:
            return DeviceRecord.model_validate(data)
        except SchemaError as e:
            raise ContractViolation(f"Malformed device {device_id}: {e}") from e

    async def toggle_device(self, device_id: str) -> DeviceState:
        """Flip a device on/off (for a door: unlocked/locked)."""
        data = await self.api.request_json("PATCH", f"/devices/{device_id}")
        try:
            toggled = ToggleResponse.model_validate(data)
        except SchemaError as e:
            raise ContractViolation(f"Malformed toggle response for {device_id}: {e}") from e

        logger.info(f"Device {device_id} toggled {toggled.status}")
        return DeviceState(id=device_id, status=toggled.status == "on")


# Global client instance
_api_client: Optional[SmartHomeAPI] = None


def get_api_client() -> SmartHomeAPI:
    """Get or create the global API client instance from configuration."""
    global _api_client
    if _api_client is None:
        api_config = get_api_config()
        _api_client = SmartHomeAPI(
            base_url=api_config.get("base_url", "http://localhost:8000/v1"),
            mode=ConnectionMode(api_config.get("mode", "live")),
            timeout_sec=float(api_config.get("timeout_sec", 30.0)),
        )
    return _api_client
