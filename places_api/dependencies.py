"""
Dependency wiring for the FastAPI app.

Clients are built once by ``create_app`` and kept on ``app.state``; the
``get_*`` functions hand them to route handlers.
"""

from __future__ import annotations

import logging

from fastapi import Request

from places_api.config import Settings
from places_api.db import DbClient, InMemoryDbClient, PostgresDbClient
from places_api.geocoding import FixedGeocoder, Geocoder, GeocodioGeocoder
from places_api.repositories import PlaceRepository, UserRepository
from places_api.storage import (
    CosStorageClient,
    InMemoryStorageClient,
    LocalStorageClient,
    StorageClient,
)

logger = logging.getLogger(__name__)


def build_db_client(settings: Settings) -> DbClient:
    if settings.use_in_memory_backends or not settings.database_url:
        logger.info("Using in-memory database")
        return InMemoryDbClient()
    return PostgresDbClient(settings.database_url)


def build_storage_client(settings: Settings) -> StorageClient:
    if settings.cos_bucket:
        return CosStorageClient(
            bucket=settings.cos_bucket,
            region=settings.cos_region or "",
            endpoint=settings.cos_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
        )
    if settings.use_in_memory_backends:
        return InMemoryStorageClient()
    return LocalStorageClient(base_dir=settings.upload_dir)


def build_geocoder(settings: Settings) -> Geocoder:
    if not settings.geocode_api_key:
        logger.info("No geocoding API key set, using fixed coordinates")
        return FixedGeocoder(lat=settings.fallback_lat, lng=settings.fallback_lng)
    return GeocodioGeocoder(
        api_key=settings.geocode_api_key,
        base_url=settings.geocode_base_url,
        timeout=settings.geocode_timeout_seconds,
    )


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage_client(request: Request) -> StorageClient:
    return request.app.state.storage


def get_place_repository(request: Request) -> PlaceRepository:
    state = request.app.state
    return PlaceRepository(state.db, state.geocoder)


def get_user_repository(request: Request) -> UserRepository:
    state = request.app.state
    return UserRepository(state.db, hash_rounds=state.settings.password_hash_rounds)
