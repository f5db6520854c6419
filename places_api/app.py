"""
FastAPI application entry point for the places API.
"""

from __future__ import annotations

import logging
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from places_api.config import Settings, get_settings
from places_api.db import DbClient
from places_api.dependencies import (
    build_db_client,
    build_geocoder,
    build_storage_client,
)
from places_api.errors import HttpError
from places_api.geocoding import Geocoder
from places_api.routes import places_router, users_router
from places_api.schemas import ErrorResponse
from places_api.storage import LocalStorageClient, StorageClient

logger = logging.getLogger(__name__)


def _error_response(message: str, status_code: int) -> JSONResponse:
    body = ErrorResponse(message=message, code=status_code)
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def _handle_http_error(request: Request, exc: HttpError) -> JSONResponse:
    return _error_response(exc.message, exc.status_code)


async def _handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.errors())
    return _error_response("Invalid inputs passed, please check your data.", 422)


async def _handle_starlette_error(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    if exc.status_code == 404:
        return _error_response("Could not find this route.", 404)
    return _error_response(str(exc.detail), exc.status_code)


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response("An unknown error occurred!", 500)


def create_app(
    settings: Settings | None = None,
    *,
    db: DbClient | None = None,
    storage: StorageClient | None = None,
    geocoder: Geocoder | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)

    app = FastAPI(title="Places API (FastAPI)", version="0.1.0")
    app.state.settings = settings
    app.state.db = db or build_db_client(settings)
    app.state.storage = storage or build_storage_client(settings)
    app.state.geocoder = geocoder or build_geocoder(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=[
            "Origin",
            "X-Requested-With",
            "Content-Type",
            "Accept",
            "Authorization",
        ],
    )
    app.add_exception_handler(HttpError, _handle_http_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, _handle_starlette_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)

    app.include_router(places_router, prefix=settings.api_prefix)
    app.include_router(users_router, prefix=settings.api_prefix)

    if isinstance(app.state.storage, LocalStorageClient):
        image_dir = Path(app.state.storage.base_dir) / settings.upload_prefix
        image_dir.mkdir(parents=True, exist_ok=True)
        app.mount(
            "/" + settings.upload_prefix.strip("/"),
            StaticFiles(directory=image_dir),
            name="images",
        )
    return app


def main() -> None:
    uvicorn.run("places_api.app:create_app", factory=True, host="0.0.0.0", port=5000)


if __name__ == "__main__":
    main()
