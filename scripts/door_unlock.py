"""
Face ID Door Unlock CLI

Drives the full client flow from the command line: manage enrolled
identities, authenticate with a face image, and toggle a door lock behind
the resulting session.

Usage:
    # List enrolled identities
    python scripts/door_unlock.py list

    # Enroll an identity from an image file
    python scripts/door_unlock.py register "Jane Smith" face.jpg

    # Authenticate as an identity, then unlock/lock the front door
    python scripts/door_unlock.py unlock jane_smith face.jpg --door front_door

    # Remove an identity
    python scripts/door_unlock.py remove jane_smith

    # Any command against the in-process development backend
    python scripts/door_unlock.py --mock register "Jane Smith" face.jpg
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(PROJECT_ROOT))

from client.api_client import ConnectionMode, DeviceClient, SmartHomeAPI  # noqa: E402
from client.components.auth_panel import (  # noqa: E402
    format_engine_status,
    format_error,
    format_identity,
    format_session_remaining,
)
from core.auth_engine import AuthState, FaceAuthEngine  # noqa: E402
from core.capture import CaptureAttempt, FileCaptureProvider  # noqa: E402
from core.config import configure_logging, get_api_config, get_devices_config  # noqa: E402
from core.errors import FaceGateError  # noqa: E402
from core.identity_registry import IdentityRegistryClient  # noqa: E402
from core.session_gate import SessionGate  # noqa: E402

logger = logging.getLogger("door_unlock")


async def cmd_list(registry: IdentityRegistryClient, args: argparse.Namespace) -> int:
    identities = await registry.list_identities()
    if not identities:
        print("No users registered")
        return 0
    print(f"Registered users ({len(identities)}):")
    for identity in identities:
        print(f"  {format_identity(identity)}")
    return 0


async def cmd_register(registry: IdentityRegistryClient, args: argparse.Namespace) -> int:
    payload = await FileCaptureProvider(args.image).capture()
    result = await registry.register_identity(args.name, CaptureAttempt(payload))
    if not result.success:
        print(f"❌ Registration failed: {result.message}")
        return 1
    print(f"✅ Registered {args.name} as {result.identity_id}")
    return 0


async def cmd_remove(registry: IdentityRegistryClient, args: argparse.Namespace) -> int:
    engine = FaceAuthEngine.from_config(registry)
    gate = SessionGate(engine)
    result = await gate.remove_identity(args.identity_id)
    if not result.success:
        print(f"❌ Removal failed: {result.message}")
        return 1
    print(f"✅ {result.message or 'User removed successfully'}")
    return 0


async def cmd_unlock(registry: IdentityRegistryClient, args: argparse.Namespace) -> int:
    engine = FaceAuthEngine.from_config(registry)
    gate = SessionGate(engine, devices=DeviceClient(registry.api))

    try:
        await gate.refresh_identities()
        engine.select_identity(args.identity_id)
        await engine.authenticate(FileCaptureProvider(args.image))
        print(format_engine_status(engine))

        if engine.state is not AuthState.GRANTED:
            return 1

        print(f"Session valid for {format_session_remaining(engine.session, engine.clock())}")
        door = await gate.toggle_door(args.door)
        print(f"🚪 {args.door} is now {'unlocked' if door.status else 'locked'}")
        return 0
    finally:
        engine.close()


COMMANDS = {
    "list": cmd_list,
    "register": cmd_register,
    "remove": cmd_remove,
    "unlock": cmd_unlock,
}


async def run(args: argparse.Namespace) -> int:
    api_config = get_api_config()
    mode = ConnectionMode.MOCK if args.mock else ConnectionMode(api_config.get("mode", "live"))

    async with SmartHomeAPI(
        base_url=args.api_url or api_config.get("base_url", "http://localhost:8000/v1"),
        mode=mode,
        timeout_sec=float(api_config.get("timeout_sec", 30.0)),
    ) as api:
        registry = IdentityRegistryClient(api)
        try:
            return await COMMANDS[args.command](registry, args)
        except FaceGateError as e:
            logger.debug("Command failed", exc_info=True)
            print(f"❌ {format_error(e)}")
            return 1


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Face ID door unlock client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--api-url",
        default=None,
        help="Backend base URL (default: api.base_url from config.yaml)",
    )
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Use the in-process development backend",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List enrolled identities")

    register_parser = subparsers.add_parser("register", help="Enroll an identity")
    register_parser.add_argument("name", help="Display name")
    register_parser.add_argument("image", help="Path to a face image")

    remove_parser = subparsers.add_parser("remove", help="Remove an identity")
    remove_parser.add_argument("identity_id", help="Identity ID")

    unlock_parser = subparsers.add_parser("unlock", help="Authenticate and toggle a door")
    unlock_parser.add_argument("identity_id", help="Identity to authenticate as")
    unlock_parser.add_argument("image", help="Path to a face image")
    unlock_parser.add_argument(
        "--door",
        default=get_devices_config().get("door_device_id", "front_door"),
        help="Door device ID (default: devices.door_device_id from config.yaml)",
    )

    args = parser.parse_args()
    configure_logging("DEBUG" if args.verbose else None)

    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
