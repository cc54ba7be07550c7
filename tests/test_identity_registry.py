"""
Tests for the IdentityRegistryClient.

The backend is replaced by an httpx.MockTransport handler, so these tests
check the exact requests the client sends and how it treats every kind of
response (valid, malformed, error status, transport failure).

Run with: pytest tests/test_identity_registry.py -v
"""

import asyncio
import json
import os
import sys

import httpx
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from client.api_client import SmartHomeAPI
from core.capture import CaptureAttempt, encode_payload
from core.errors import ContractViolation, NetworkError, ServerError, ValidationError
from core.identity_registry import IdentityRegistryClient

from fakes import FACE, T0

BASE_URL = "http://backend.test/v1"


def make_registry(handler) -> IdentityRegistryClient:
    api = SmartHomeAPI(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return IdentityRegistryClient(api)


def run(coro):
    return asyncio.run(coro)


class RecordingHandler:
    """Answers every request with one canned response and remembers the requests."""

    def __init__(self, status_code=200, json_body=None, content=None):
        self.status_code = status_code
        self.json_body = json_body
        self.content = content
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.content is not None:
            return httpx.Response(self.status_code, content=self.content)
        return httpx.Response(self.status_code, json=self.json_body)


class FakeBackend:
    """Minimal stateful backend: register adds, delete removes, list lists."""

    def __init__(self):
        self.users = []
        self.clock = T0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.method == "GET" and path == "/v1/face-recognition/users":
            return httpx.Response(200, json=self.users)
        if request.method == "POST" and path == "/v1/face-recognition/register":
            user_id = f"u{len(self.users) + 1}"
            name = "Alice" if b"Alice" in request.content else "Bob"
            self.clock += 1000
            self.users.append({"id": user_id, "name": name, "addedAt": self.clock})
            return httpx.Response(200, json={"success": True, "userId": user_id})
        if request.method == "DELETE" and path.startswith("/v1/face-recognition/users/"):
            user_id = path.rsplit("/", 1)[-1]
            self.users = [u for u in self.users if u["id"] != user_id]
            return httpx.Response(200, json={"success": True, "message": "User removed successfully"})
        return httpx.Response(404, json={"detail": "Not Found"})


class TestListIdentities:
    """Tests for GET /face-recognition/users."""

    def test_parses_records(self):
        handler = RecordingHandler(json_body=[
            {"id": "u1", "name": "Alice", "addedAt": T0, "lastAuthenticated": T0 + 5},
            {"id": "u2", "name": "Bob", "addedAt": T0 + 1},
        ])
        registry = make_registry(handler)

        identities = run(registry.list_identities())

        assert [i.id for i in identities] == ["u1", "u2"]
        assert identities[0].display_name == "Alice"
        assert identities[0].enrolled_at == T0
        assert identities[0].last_authenticated_at == T0 + 5
        assert identities[1].last_authenticated_at is None
        assert handler.requests[0].method == "GET"
        assert handler.requests[0].url.path == "/v1/face-recognition/users"

    def test_replaces_snapshot(self):
        handler = RecordingHandler(json_body=[{"id": "u1", "name": "Alice", "addedAt": T0}])
        registry = make_registry(handler)
        run(registry.list_identities())
        assert registry.get_identity("u1") is not None

        handler.json_body = []
        run(registry.list_identities())
        assert registry.identities == []
        assert registry.get_identity("u1") is None

    @pytest.mark.parametrize(
        "body",
        [
            {"users": []},
            [{"name": "Alice", "addedAt": T0}],
            [{"id": "", "name": "Alice", "addedAt": T0}],
            [{"id": "u1", "name": "Alice", "addedAt": "yesterday"}],
        ],
    )
    def test_malformed_list_is_contract_violation(self, body):
        registry = make_registry(RecordingHandler(json_body=body))
        with pytest.raises(ContractViolation):
            run(registry.list_identities())
        assert registry.identities == []

    def test_non_json_body_is_contract_violation(self):
        registry = make_registry(RecordingHandler(content=b"<html>oops</html>"))
        with pytest.raises(ContractViolation):
            run(registry.list_identities())


class TestRegisterIdentity:
    """Tests for POST /face-recognition/register."""

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_blank_name_rejected_without_request(self, name):
        handler = RecordingHandler(json_body={"success": True, "userId": "x"})
        registry = make_registry(handler)

        with pytest.raises(ValidationError, match="Please enter a name"):
            run(registry.register_identity(name, CaptureAttempt(FACE)))
        assert handler.requests == []

    def test_missing_capture_rejected_without_request(self):
        handler = RecordingHandler(json_body={"success": True, "userId": "x"})
        registry = make_registry(handler)

        with pytest.raises(ValidationError):
            run(registry.register_identity("Alice", None))
        with pytest.raises(ValidationError):
            run(registry.register_identity("Alice", CaptureAttempt(b"")))
        assert handler.requests == []

    def test_targeted_capture_rejected(self):
        handler = RecordingHandler(json_body={"success": True, "userId": "x"})
        registry = make_registry(handler)

        with pytest.raises(ValidationError):
            run(registry.register_identity("Alice", CaptureAttempt(FACE, target_identity_id="u1")))
        assert handler.requests == []

    def test_sends_multipart_name_and_image(self):
        handler = RecordingHandler(json_body={"success": True, "userId": "alice", "message": "ok"})
        registry = make_registry(handler)

        result = run(registry.register_identity("  Alice ", CaptureAttempt(FACE)))

        assert result.success
        assert result.identity_id == "alice"
        request = handler.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/v1/face-recognition/register"
        assert request.headers["content-type"].startswith("multipart/form-data")
        assert b'name="name"' in request.content
        assert b"Alice" in request.content
        assert b'name="image"' in request.content
        assert FACE in request.content

    def test_base64_payload_decoded_before_upload(self):
        handler = RecordingHandler(json_body={"success": True, "userId": "alice"})
        registry = make_registry(handler)

        run(registry.register_identity("Alice", CaptureAttempt("data:image/jpeg;base64," + encode_payload(FACE))))

        assert FACE in handler.requests[0].content

    def test_does_not_insert_locally(self):
        registry = make_registry(RecordingHandler(json_body={"success": True, "userId": "alice"}))
        run(registry.register_identity("Alice", CaptureAttempt(FACE)))
        assert registry.identities == []

    def test_no_face_detected_is_server_error(self):
        handler = RecordingHandler(
            status_code=500,
            json_body={"detail": "Failed to extract embedding: no face detected"},
        )
        registry = make_registry(handler)

        with pytest.raises(ServerError) as exc_info:
            run(registry.register_identity("Alice", CaptureAttempt(FACE)))

        assert exc_info.value.code == 500
        assert "no face detected" in exc_info.value.detail

    def test_rejected_registration(self):
        registry = make_registry(
            RecordingHandler(json_body={"success": False, "message": "User already registered"})
        )
        result = run(registry.register_identity("Alice", CaptureAttempt(FACE)))
        assert not result.success
        assert result.message == "User already registered"

    def test_register_then_list(self):
        """Two registrations, then a refresh lists both in backend order."""
        registry = make_registry(FakeBackend())

        first = run(registry.register_identity("Alice", CaptureAttempt(FACE)))
        second = run(registry.register_identity("Bob", CaptureAttempt(FACE)))
        identities = run(registry.list_identities())

        assert (first.identity_id, second.identity_id) == ("u1", "u2")
        assert [i.id for i in identities] == ["u1", "u2"]
        assert [i.display_name for i in identities] == ["Alice", "Bob"]
        assert identities[0].enrolled_at < identities[1].enrolled_at


class TestTransportFailures:
    """Transport errors surface as NetworkError."""

    @pytest.mark.parametrize(
        "exc",
        [
            httpx.ConnectError("connection refused"),
            httpx.ReadTimeout("timed out"),
        ],
    )
    def test_network_error(self, exc):
        def handler(request):
            raise exc

        registry = make_registry(handler)
        with pytest.raises(NetworkError):
            run(registry.list_identities())


class TestRemoveIdentity:
    """Tests for DELETE /face-recognition/users/{id}."""

    def test_remove_confirmed_drops_from_snapshot(self):
        backend = FakeBackend()
        backend.users = [
            {"id": "u1", "name": "Alice", "addedAt": T0},
            {"id": "u2", "name": "Bob", "addedAt": T0 + 1},
        ]
        registry = make_registry(backend)
        run(registry.list_identities())

        result = run(registry.remove_identity("u1"))

        assert result.success
        assert [i.id for i in registry.identities] == ["u2"]

    def test_remove_rejected_keeps_snapshot(self):
        handler = RecordingHandler(json_body=[{"id": "u1", "name": "Alice", "addedAt": T0}])
        registry = make_registry(handler)
        run(registry.list_identities())

        handler.json_body = {"success": False, "message": "Failed to remove user"}
        result = run(registry.remove_identity("u1"))

        assert not result.success
        assert registry.get_identity("u1") is not None
        assert handler.requests[-1].method == "DELETE"
        assert handler.requests[-1].url.path == "/v1/face-recognition/users/u1"

    def test_remove_unknown_is_server_error(self):
        registry = make_registry(RecordingHandler(status_code=404, json_body={"detail": "User not found"}))
        with pytest.raises(ServerError) as exc_info:
            run(registry.remove_identity("ghost"))
        assert exc_info.value.code == 404

    def test_remove_requires_id(self):
        registry = make_registry(RecordingHandler(json_body={"success": True}))
        with pytest.raises(ValidationError):
            run(registry.remove_identity(""))

    def test_discard_drops_from_snapshot(self):
        registry = make_registry(RecordingHandler(json_body=[{"id": "u1", "name": "Alice", "addedAt": T0}]))
        run(registry.list_identities())

        assert registry.discard("u1") is True
        assert registry.identities == []
        assert registry.discard("u1") is False


class TestVerify:
    """Tests for POST /face-recognition/authenticate."""

    def test_sends_target_user_id(self):
        handler = RecordingHandler(json_body={
            "success": True, "userId": "u1", "userName": "Alice", "confidence": 0.9,
        })
        registry = make_registry(handler)

        response = run(registry.verify(CaptureAttempt(FACE, target_identity_id="u1")))

        assert response.success
        assert response.user_id == "u1"
        assert response.user_name == "Alice"
        request = handler.requests[0]
        assert request.url.path == "/v1/face-recognition/authenticate"
        assert b'name="user_id"' in request.content
        assert b"u1" in request.content
        assert FACE in request.content

    def test_without_target_omits_user_id(self):
        handler = RecordingHandler(json_body={"success": False, "message": "Face not recognized"})
        registry = make_registry(handler)

        response = run(registry.verify(CaptureAttempt(FACE)))

        assert not response.success
        assert b'name="user_id"' not in handler.requests[0].content

    @pytest.mark.parametrize(
        "body",
        [
            {"success": True, "userId": "u1", "userName": "Alice", "confidence": 1.5},
            {"userId": "u1"},
            ["success"],
        ],
    )
    def test_malformed_response_is_contract_violation(self, body):
        registry = make_registry(RecordingHandler(json_body=body))
        with pytest.raises(ContractViolation):
            run(registry.verify(CaptureAttempt(FACE, target_identity_id="u1")))

    def test_unknown_user_is_server_error(self):
        handler = RecordingHandler(
            status_code=404,
            content=json.dumps({"detail": "No registered face found for this user"}).encode(),
        )
        registry = make_registry(handler)
        with pytest.raises(ServerError) as exc_info:
            run(registry.verify(CaptureAttempt(FACE, target_identity_id="ghost")))
        assert exc_info.value.detail == "No registered face found for this user"


class TestMarkAuthenticated:
    def test_updates_snapshot(self):
        registry = make_registry(RecordingHandler(json_body=[{"id": "u1", "name": "Alice", "addedAt": T0}]))
        run(registry.list_identities())

        assert registry.mark_authenticated("u1", T0 + 10)
        assert registry.get_identity("u1").last_authenticated_at == T0 + 10
        assert not registry.mark_authenticated("ghost", T0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
