"""
Face Recognition API Routes

This module provides the face-recognition endpoints of the development backend:
- GET /face-recognition/users: List enrolled identities
- POST /face-recognition/register: Enroll an identity (multipart: name, image)
- POST /face-recognition/authenticate: Verify a capture (multipart: image, user_id?)
- DELETE /face-recognition/users/{user_id}: Remove an identity
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile

from api.schemas import AuthenticateResponse, RegisterResponse, RemoveResponse
from api.store import (
    DuplicateIdentityError,
    FaceRegistryStore,
    NoFaceDetectedError,
    UnknownIdentityError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/face-recognition", tags=["face-recognition"])


def get_registry_store(request: Request) -> FaceRegistryStore:
    return request.app.state.registry_store


async def _read_image(image: UploadFile) -> bytes:
    data = await image.read()
    if not data:
        raise HTTPException(status_code=400, detail="Invalid image data: image is empty")
    return data


@router.get("/users")
async def list_users(store: FaceRegistryStore = Depends(get_registry_store)) -> List[Dict[str, Any]]:
    """List all enrolled identities as a bare JSON array."""
    return [identity.to_record() for identity in store.list_identities()]


@router.post("/register", response_model=RegisterResponse, response_model_exclude_none=True)
async def register(
    name: str = Form(...),
    image: UploadFile = File(...),
    store: FaceRegistryStore = Depends(get_registry_store),
):
    """
    Enroll a new identity from one image.

    Raises:
        400: Empty name/image or the identity already exists.
        500: No face could be extracted from the image.
    """
    if not name.strip():
        raise HTTPException(status_code=400, detail="Invalid user name")
    data = await _read_image(image)

    try:
        identity = store.register(name, data)
    except DuplicateIdentityError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NoFaceDetectedError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return RegisterResponse(
        success=True,
        user_id=identity.id,
        message="User registered successfully",
    )


@router.post("/authenticate", response_model=AuthenticateResponse, response_model_exclude_none=True)
async def authenticate(
    image: UploadFile = File(...),
    user_id: Optional[str] = Form(None),
    store: FaceRegistryStore = Depends(get_registry_store),
):
    """
    Verify a capture against one identity (user_id given) or all identities.

    A non-matching face is a normal response with success=false, not an error.
    """
    data = await _read_image(image)
    logger.info(f"Authentication request: {len(data)} bytes, user_id={user_id}")

    try:
        matched = store.authenticate(data, user_id=user_id)
    except UnknownIdentityError:
        raise HTTPException(status_code=404, detail="No registered face found for this user")
    except NoFaceDetectedError as e:
        raise HTTPException(status_code=500, detail=str(e))

    if matched is None:
        return AuthenticateResponse(success=False, message="Face not recognized. Please try again.")

    return AuthenticateResponse(
        success=True,
        user_id=matched.id,
        user_name=matched.name,
        confidence=1.0,
        message=f"Welcome back, {matched.name}!",
    )


@router.delete("/users/{user_id}", response_model=RemoveResponse, response_model_exclude_none=True)
async def remove_user(user_id: str, store: FaceRegistryStore = Depends(get_registry_store)):
    """
    Remove an enrolled identity.

    Raises:
        404: If the identity is not found.
    """
    if not store.remove(user_id):
        raise HTTPException(status_code=404, detail=f"User {user_id} not found")

    return RemoveResponse(success=True, message=f"User {user_id} removed successfully")
