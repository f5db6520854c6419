"""
HTTP routes for places and users.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, UploadFile

from places_api.auth import issue_token, require_caller
from places_api.config import Settings
from places_api.dependencies import (
    get_app_settings,
    get_place_repository,
    get_storage_client,
    get_user_repository,
)
from places_api.repositories import PlaceRepository, UserRepository
from places_api.schemas import (
    AuthResponse,
    LoginPayload,
    MessageResponse,
    PlaceResponse,
    PlacesResponse,
    PlaceView,
    UpdatePlacePayload,
    UsersResponse,
    UserView,
)
from places_api.storage import StorageClient
from places_api.uploads import discard_image, store_image

logger = logging.getLogger(__name__)

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

places_router = APIRouter(prefix="/places", tags=["places"])
users_router = APIRouter(prefix="/users", tags=["users"])


@places_router.get("/{place_id}", response_model=PlaceResponse)
def get_place_by_id(
    place_id: str, places: PlaceRepository = Depends(get_place_repository)
):
    place = places.get_by_id(place_id)
    return PlaceResponse(place=PlaceView.from_record(place))


@places_router.get("/users/{user_id}", response_model=PlacesResponse)
def get_places_by_user_id(
    user_id: str, places: PlaceRepository = Depends(get_place_repository)
):
    found = places.list_by_creator(user_id)
    return PlacesResponse(places=[PlaceView.from_record(p) for p in found])


@places_router.post("", response_model=PlaceResponse, status_code=201)
def create_place(
    title: str = Form(..., min_length=1),
    description: str = Form(..., min_length=5),
    address: str = Form(..., min_length=1),
    creator: str | None = Form(None),
    image: UploadFile = File(...),
    caller_id: str | None = Depends(require_caller),
    places: PlaceRepository = Depends(get_place_repository),
    storage: StorageClient = Depends(get_storage_client),
    settings: Settings = Depends(get_app_settings),
):
    """
    Create a place owned by ``creator`` (defaults to the caller).
    """
    image_path = store_image(
        image,
        storage,
        prefix=settings.upload_prefix,
        max_bytes=settings.max_upload_bytes,
    )
    try:
        place = places.create(
            title=title,
            description=description,
            address=address,
            creator_id=creator or caller_id,
            image=image_path,
        )
    except Exception:
        discard_image(storage, image_path)
        raise
    return PlaceResponse(place=PlaceView.from_record(place))


@places_router.patch("/{place_id}", response_model=PlaceResponse)
def update_place(
    place_id: str,
    payload: UpdatePlacePayload,
    caller_id: str | None = Depends(require_caller),
    places: PlaceRepository = Depends(get_place_repository),
):
    place = places.update(
        place_id,
        title=payload.title,
        description=payload.description,
        caller_id=caller_id,
    )
    return PlaceResponse(place=PlaceView.from_record(place))


@places_router.delete("/{place_id}", response_model=MessageResponse)
def delete_place(
    place_id: str,
    background_tasks: BackgroundTasks,
    caller_id: str | None = Depends(require_caller),
    places: PlaceRepository = Depends(get_place_repository),
    storage: StorageClient = Depends(get_storage_client),
):
    place = places.delete(place_id, caller_id=caller_id)
    # Runs after the response is sent; failures are only logged.
    background_tasks.add_task(discard_image, storage, place.image)
    return MessageResponse(message="Deleted place.")


@users_router.get("", response_model=UsersResponse)
def get_users(users: UserRepository = Depends(get_user_repository)):
    return UsersResponse(users=[UserView.from_record(u) for u in users.list_users()])


@users_router.post("/signup", response_model=AuthResponse, status_code=201)
def signup(
    name: str = Form(..., min_length=1),
    email: str = Form(..., pattern=EMAIL_PATTERN),
    password: str = Form(..., min_length=6),
    image: UploadFile = File(...),
    users: UserRepository = Depends(get_user_repository),
    storage: StorageClient = Depends(get_storage_client),
    settings: Settings = Depends(get_app_settings),
):
    image_path = store_image(
        image,
        storage,
        prefix=settings.upload_prefix,
        max_bytes=settings.max_upload_bytes,
    )
    try:
        user = users.signup(name, email, password, image_path)
    except Exception:
        discard_image(storage, image_path)
        raise
    logger.info("Signed up user %s", user.id)
    return AuthResponse(
        userId=user.id, email=user.email, token=issue_token(user.id, user.email, settings)
    )


@users_router.post("/login", response_model=AuthResponse)
def login(
    payload: LoginPayload,
    users: UserRepository = Depends(get_user_repository),
    settings: Settings = Depends(get_app_settings),
):
    user = users.login(payload.email, payload.password)
    return AuthResponse(
        userId=user.id, email=user.email, token=issue_token(user.id, user.email, settings)
    )
