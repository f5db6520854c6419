"""
Database abstraction for Postgres and an in-memory test implementation.

Both clients hand out a unit of work through ``transaction()``. Everything
done through the unit of work commits together when the ``with`` block
exits normally and is rolled back if it raises.
"""

from __future__ import annotations

import copy
import threading
from contextlib import contextmanager
from typing import ContextManager, Dict, Iterator, Optional, Protocol

from sqlalchemy import JSON, Column, Float, ForeignKey, String, create_engine, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from places_api.types import Coordinates, PlaceRecord, UserRecord


class UnitOfWork(Protocol):
    """Reads and writes performed inside a single transaction."""

    def get_place(self, place_id: str) -> Optional[PlaceRecord]:
        ...

    def list_places_by_creator(self, user_id: str) -> list[PlaceRecord]:
        ...

    def add_place(self, place: PlaceRecord) -> None:
        ...

    def update_place(
        self, place_id: str, *, title: str, description: str
    ) -> Optional[PlaceRecord]:
        ...

    def remove_place(self, place_id: str) -> None:
        ...

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        ...

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        ...

    def list_users(self) -> list[UserRecord]:
        ...

    def add_user(self, user: UserRecord) -> None:
        ...

    def append_user_place(self, user_id: str, place_id: str) -> None:
        ...

    def remove_user_place(self, user_id: str, place_id: str) -> None:
        ...


class DbClient(Protocol):
    """Interface for database access."""

    def transaction(self) -> ContextManager[UnitOfWork]:
        ...

    def get_place(self, place_id: str) -> Optional[PlaceRecord]:
        ...

    def list_places_by_creator(self, user_id: str) -> list[PlaceRecord]:
        ...

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        ...

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        ...

    def list_users(self) -> list[UserRecord]:
        ...


class _TransactionalReads:
    """Single-read helpers, each running in its own short transaction."""

    def get_place(self, place_id: str) -> Optional[PlaceRecord]:
        with self.transaction() as tx:
            return tx.get_place(place_id)

    def list_places_by_creator(self, user_id: str) -> list[PlaceRecord]:
        with self.transaction() as tx:
            return tx.list_places_by_creator(user_id)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self.transaction() as tx:
            return tx.get_user(user_id)

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        with self.transaction() as tx:
            return tx.get_user_by_email(email)

    def list_users(self) -> list[UserRecord]:
        with self.transaction() as tx:
            return tx.list_users()


class InMemoryUnitOfWork:
    def __init__(self, client: "InMemoryDbClient"):
        self._client = client

    def get_place(self, place_id: str) -> Optional[PlaceRecord]:
        return copy.deepcopy(self._client.places.get(place_id))

    def list_places_by_creator(self, user_id: str) -> list[PlaceRecord]:
        return [
            copy.deepcopy(place)
            for place in self._client.places.values()
            if place.creator == user_id
        ]

    def add_place(self, place: PlaceRecord) -> None:
        if place.id in self._client.places:
            raise KeyError(f"Duplicate place id {place.id}")
        self._client.places[place.id] = copy.deepcopy(place)

    def update_place(
        self, place_id: str, *, title: str, description: str
    ) -> Optional[PlaceRecord]:
        place = self._client.places.get(place_id)
        if not place:
            return None
        place.title = title
        place.description = description
        return copy.deepcopy(place)

    def remove_place(self, place_id: str) -> None:
        del self._client.places[place_id]

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return copy.deepcopy(self._client.users.get(user_id))

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        for user in self._client.users.values():
            if user.email == email:
                return copy.deepcopy(user)
        return None

    def list_users(self) -> list[UserRecord]:
        return [copy.deepcopy(user) for user in self._client.users.values()]

    def add_user(self, user: UserRecord) -> None:
        if self.get_user_by_email(user.email):
            raise KeyError(f"Duplicate email {user.email}")
        self._client.users[user.id] = copy.deepcopy(user)

    def append_user_place(self, user_id: str, place_id: str) -> None:
        self._client.users[user_id].places.append(place_id)

    def remove_user_place(self, user_id: str, place_id: str) -> None:
        self._client.users[user_id].places.remove(place_id)


class InMemoryDbClient(_TransactionalReads):
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.places: Dict[str, PlaceRecord] = {}
        self.users: Dict[str, UserRecord] = {}
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[InMemoryUnitOfWork]:
        # Transactions are serialized; a failed one restores the snapshot.
        with self._lock:
            snapshot = (copy.deepcopy(self.places), copy.deepcopy(self.users))
            try:
                yield InMemoryUnitOfWork(self)
            except BaseException:
                self.places, self.users = snapshot
                raise

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.places.clear()
            self.users.clear()


class SqlUnitOfWork:
    def __init__(self, session: Session):
        self.session = session

    def get_place(self, place_id: str) -> Optional[PlaceRecord]:
        row = self.session.get(PlaceRow, place_id)
        return _to_place_record(row) if row else None

    def list_places_by_creator(self, user_id: str) -> list[PlaceRecord]:
        stmt = select(PlaceRow).where(PlaceRow.creator == user_id)
        return [_to_place_record(row) for row in self.session.scalars(stmt)]

    def add_place(self, place: PlaceRecord) -> None:
        self.session.add(
            PlaceRow(
                id=place.id,
                title=place.title,
                description=place.description,
                address=place.address,
                lat=place.location.lat,
                lng=place.location.lng,
                image=place.image,
                creator=place.creator,
            )
        )
        self.session.flush()

    def update_place(
        self, place_id: str, *, title: str, description: str
    ) -> Optional[PlaceRecord]:
        row = self.session.get(PlaceRow, place_id)
        if not row:
            return None
        row.title = title
        row.description = description
        self.session.flush()
        return _to_place_record(row)

    def remove_place(self, place_id: str) -> None:
        row = self.session.get(PlaceRow, place_id)
        if not row:
            raise KeyError(place_id)
        self.session.delete(row)
        self.session.flush()

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        row = self.session.get(UserRow, user_id)
        return _to_user_record(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        stmt = select(UserRow).where(UserRow.email == email)
        row = self.session.scalars(stmt).first()
        return _to_user_record(row) if row else None

    def list_users(self) -> list[UserRecord]:
        return [_to_user_record(row) for row in self.session.scalars(select(UserRow))]

    def add_user(self, user: UserRecord) -> None:
        self.session.add(
            UserRow(
                id=user.id,
                name=user.name,
                email=user.email,
                password=user.password,
                image=user.image,
                places=list(user.places),
            )
        )
        self.session.flush()

    def append_user_place(self, user_id: str, place_id: str) -> None:
        row = self._require_user(user_id)
        # JSON columns only track reassignment, not in-place mutation.
        row.places = [*row.places, place_id]
        self.session.flush()

    def remove_user_place(self, user_id: str, place_id: str) -> None:
        row = self._require_user(user_id)
        if place_id not in row.places:
            raise ValueError(f"Place {place_id} is not listed for user {user_id}")
        row.places = [pid for pid in row.places if pid != place_id]
        self.session.flush()

    def _require_user(self, user_id: str) -> "UserRow":
        # Row lock serializes concurrent read-modify-write of the places list.
        row = self.session.get(
            UserRow, user_id, with_for_update=True, populate_existing=True
        )
        if not row:
            raise KeyError(user_id)
        return row


class PostgresDbClient(_TransactionalReads):
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @contextmanager
    def transaction(self) -> Iterator[SqlUnitOfWork]:
        with self.Session() as session, session.begin():
            yield SqlUnitOfWork(session)


def _to_place_record(row: "PlaceRow") -> PlaceRecord:
    return PlaceRecord(
        id=row.id,
        title=row.title,
        description=row.description,
        address=row.address,
        location=Coordinates(lat=row.lat, lng=row.lng),
        image=row.image,
        creator=row.creator,
    )


def _to_user_record(row: "UserRow") -> UserRecord:
    return UserRecord(
        id=row.id,
        name=row.name,
        email=row.email,
        password=row.password,
        image=row.image,
        places=list(row.places or []),
    )


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True, index=True)
    password = Column(String, nullable=False)
    image = Column(String, nullable=False)
    # Ordered list of place ids created by this user.
    places = Column(JSON, nullable=False, default=list)


class PlaceRow(Base):
    __tablename__ = "places"

    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    description = Column(String, nullable=False)
    address = Column(String, nullable=False)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    image = Column(String, nullable=False)
    creator = Column(String, ForeignKey("users.id"), nullable=False, index=True)
