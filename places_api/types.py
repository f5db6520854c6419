"""
Storage-side records shared by the database clients and repositories.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Coordinates:
    lat: float
    lng: float

    def as_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lng}


@dataclass
class PlaceRecord:
    id: str
    title: str
    description: str
    address: str
    location: Coordinates
    image: str
    creator: str


@dataclass
class UserRecord:
    id: str
    name: str
    email: str
    password: str
    image: str
    places: list[str] = field(default_factory=list)
