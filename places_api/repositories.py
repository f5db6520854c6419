"""
Place and user repositories.

Creating and deleting a place touch two records: the place itself and the
creator's list of place ids. Both writes go through one unit of work so
they commit or roll back together.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator
from uuid import uuid4

import bcrypt

from places_api.db import DbClient
from places_api.errors import (
    AuthError,
    ForbiddenError,
    HttpError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from places_api.geocoding import Geocoder
from places_api.types import PlaceRecord, UserRecord

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password.
MAX_PASSWORD_BYTES = 72


@contextmanager
def _storage_failures(message: str) -> Iterator[None]:
    """Re-raise unexpected storage errors as InternalError(message)."""
    try:
        yield
    except HttpError:
        raise
    except Exception as exc:
        logger.exception(message)
        raise InternalError(message) from exc


class PlaceRepository:
    def __init__(self, db: DbClient, geocoder: Geocoder):
        self.db = db
        self.geocoder = geocoder

    def get_by_id(self, place_id: str) -> PlaceRecord:
        with _storage_failures("Something went wrong, could not find a place."):
            place = self.db.get_place(place_id)
        if not place:
            raise NotFoundError("Could not find a place for the provided id.")
        return place

    def list_by_creator(self, user_id: str) -> list[PlaceRecord]:
        """
        Places created by user_id. An empty result is reported as
        NotFoundError rather than an empty list.
        """
        with _storage_failures("Fetching places failed, please try again later."):
            places = self.db.list_places_by_creator(user_id)
        if not places:
            raise NotFoundError("Could not find places for the provided user id.")
        return places

    def create(
        self,
        title: str,
        description: str,
        address: str,
        creator_id: str,
        image: str,
    ) -> PlaceRecord:
        """
        Geocode the address and store a new place for creator_id.

        The place insert and the creator's place-list update run in one
        transaction.

        Raises:
            AddressLookupError: If the address cannot be geocoded.
            NotFoundError: If creator_id does not reference a user.
            InternalError: If storage fails; nothing is persisted.
        """
        coordinates = self.geocoder.geocode(address)

        failed = "Creating place failed, please try again."
        with _storage_failures(failed):
            user = self.db.get_user(creator_id)
        if not user:
            raise NotFoundError("Could not find the user for given id.")

        place = PlaceRecord(
            id=uuid4().hex,
            title=title,
            description=description,
            address=address,
            location=coordinates,
            image=image,
            creator=user.id,
        )
        with _storage_failures(failed):
            with self.db.transaction() as tx:
                tx.add_place(place)
                tx.append_user_place(user.id, place.id)
        logger.info("Created place %s for user %s", place.id, user.id)
        return place

    def update(
        self, place_id: str, title: str, description: str, caller_id: str | None
    ) -> PlaceRecord:
        with _storage_failures("Something went wrong, could not update place."):
            with self.db.transaction() as tx:
                place = tx.get_place(place_id)
                if not place:
                    raise NotFoundError("Could not find place for this id.")
                if place.creator != caller_id:
                    raise ForbiddenError("You are not allowed to edit this place.")
                updated = tx.update_place(
                    place_id, title=title, description=description
                )
        return updated

    def delete(self, place_id: str, caller_id: str | None) -> PlaceRecord:
        """
        Remove a place and its entry in the owner's place list.

        The owner is loaded in full and its id compared with the caller.
        Returns the deleted place so its image can be cleaned up afterwards.
        """
        with _storage_failures("Something went wrong, could not delete place."):
            with self.db.transaction() as tx:
                place = tx.get_place(place_id)
                if not place:
                    raise NotFoundError("Could not find place for this id.")
                owner = tx.get_user(place.creator)
                if owner is None or owner.id != caller_id:
                    raise ForbiddenError("You are not allowed to delete this place.")
                tx.remove_place(place.id)
                tx.remove_user_place(owner.id, place.id)
        logger.info("Deleted place %s of user %s", place.id, owner.id)
        return place


class UserRepository:
    def __init__(self, db: DbClient, hash_rounds: int = 12):
        self.db = db
        self.hash_rounds = hash_rounds

    def list_users(self) -> list[UserRecord]:
        with _storage_failures("Fetching users failed, please try again later."):
            return self.db.list_users()

    def signup(self, name: str, email: str, password: str, image: str) -> UserRecord:
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError("Invalid inputs passed, please check your data.")

        hashed = bcrypt.hashpw(
            password.encode("utf-8"), bcrypt.gensalt(rounds=self.hash_rounds)
        ).decode("utf-8")
        user = UserRecord(
            id=uuid4().hex,
            name=name,
            email=_normalize_email(email),
            password=hashed,
            image=image,
        )
        with _storage_failures("Signing up failed, please try again later."):
            with self.db.transaction() as tx:
                if tx.get_user_by_email(user.email):
                    raise ValidationError(
                        "User exists already, please login instead."
                    )
                tx.add_user(user)
        return user

    def login(self, email: str, password: str) -> UserRecord:
        with _storage_failures("Logging in failed, please try again later."):
            user = self.db.get_user_by_email(_normalize_email(email))
        if not user or not _password_matches(password, user.password):
            raise AuthError("Invalid credentials, could not log you in.")
        return user


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _password_matches(password: str, hashed: str) -> bool:
    raw = password.encode("utf-8")
    if len(raw) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(raw, hashed.encode("utf-8"))
