"""
Pydantic schemas for the places API.

View models are built from storage records and expose only public fields.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from places_api.types import PlaceRecord, UserRecord


class LocationView(BaseModel):
    lat: float
    lng: float


class PlaceView(BaseModel):
    id: str
    title: str
    description: str
    address: str
    location: LocationView
    image: str
    creator: str

    @classmethod
    def from_record(cls, place: PlaceRecord) -> "PlaceView":
        return cls(
            id=place.id,
            title=place.title,
            description=place.description,
            address=place.address,
            location=LocationView(lat=place.location.lat, lng=place.location.lng),
            image=place.image,
            creator=place.creator,
        )


class UserView(BaseModel):
    id: str
    name: str
    email: str
    image: str
    places: list[str]

    @classmethod
    def from_record(cls, user: UserRecord) -> "UserView":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            image=user.image,
            places=list(user.places),
        )


class PlaceResponse(BaseModel):
    place: PlaceView


class PlacesResponse(BaseModel):
    places: list[PlaceView]


class UsersResponse(BaseModel):
    users: list[UserView]


class UpdatePlacePayload(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=5)


class LoginPayload(BaseModel):
    email: str
    password: str


class AuthResponse(BaseModel):
    userId: str
    email: str
    token: str


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    message: str
    code: int
