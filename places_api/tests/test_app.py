import unittest
from unittest.mock import patch

import requests
from fastapi.testclient import TestClient

from places_api.app import create_app
from places_api.config import Settings
from places_api.db import InMemoryDbClient, InMemoryUnitOfWork
from places_api.errors import AddressLookupError
from places_api.storage import InMemoryStorageClient
from places_api.types import Coordinates

PNG = ("photo.png", b"\x89PNG fake image bytes", "image/png")


class StubGeocoder:
    """Knows a handful of addresses; everything else has no results."""

    known = {
        "1600 Amphitheatre Pkwy": Coordinates(lat=37.4224764, lng=-122.0842499),
        "20 W 34th St, New York": Coordinates(lat=40.7484405, lng=-73.9878531),
    }

    def __init__(self):
        self.failure = None

    def geocode(self, address):
        if self.failure:
            raise self.failure
        if address not in self.known:
            raise AddressLookupError("Could not find location for specified address.")
        return self.known[address]


class BackendApiTests(unittest.TestCase):
    def setUp(self):
        self.settings = Settings(
            use_in_memory_backends=True,
            jwt_key="test-secret",
            password_hash_rounds=4,
        )
        self.db = InMemoryDbClient()
        self.storage = InMemoryStorageClient()
        self.geocoder = StubGeocoder()
        self.app = create_app(
            self.settings, db=self.db, storage=self.storage, geocoder=self.geocoder
        )
        self.client = TestClient(self.app)

    def _signup(self, name="Ada", email="ada@example.com"):
        response = self.client.post(
            "/api/users/signup",
            data={"name": name, "email": email, "password": "secret1"},
            files={"image": PNG},
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def _auth(self, user):
        return {"Authorization": f"Bearer {user['token']}"}

    def _create_place(self, user, **overrides):
        data = {
            "title": "Cafe",
            "description": "A nice cafe downtown",
            "address": "1600 Amphitheatre Pkwy",
            "creator": user["userId"],
        }
        data.update(overrides)
        return self.client.post(
            "/api/places", data=data, files={"image": PNG}, headers=self._auth(user)
        )

    def test_create_then_delete_place(self):
        user = self._signup()
        response = self._create_place(user)
        self.assertEqual(response.status_code, 201, response.text)
        place = response.json()["place"]
        self.assertEqual(place["creator"], user["userId"])
        self.assertEqual(place["location"], {"lat": 37.4224764, "lng": -122.0842499})
        self.assertIn(place["image"], self.storage.stored_objects)
        self.assertEqual(self.db.users[user["userId"]].places, [place["id"]])

        delete_resp = self.client.delete(
            f"/api/places/{place['id']}", headers=self._auth(user)
        )
        self.assertEqual(delete_resp.status_code, 200)
        self.assertEqual(delete_resp.json(), {"message": "Deleted place."})

        get_resp = self.client.get(f"/api/places/{place['id']}")
        self.assertEqual(get_resp.status_code, 404)
        self.assertEqual(get_resp.json()["code"], 404)
        self.assertEqual(self.db.users[user["userId"]].places, [])
        self.assertNotIn(place["image"], self.storage.stored_objects)

    def test_get_place_round_trip(self):
        user = self._signup()
        created = self._create_place(
            user,
            title="Empire State",
            description="Tall building",
            address="20 W 34th St, New York",
        ).json()["place"]

        response = self.client.get(f"/api/places/{created['id']}")
        self.assertEqual(response.status_code, 200)
        place = response.json()["place"]
        self.assertEqual(place["id"], created["id"])
        self.assertEqual(place["title"], "Empire State")
        self.assertEqual(place["description"], "Tall building")
        self.assertIsNotNone(place["location"])
        self.assertNotIn("_id", place)

    def test_creator_defaults_to_caller(self):
        user = self._signup()
        response = self.client.post(
            "/api/places",
            data={
                "title": "Cafe",
                "description": "A nice cafe downtown",
                "address": "1600 Amphitheatre Pkwy",
            },
            files={"image": PNG},
            headers=self._auth(user),
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["place"]["creator"], user["userId"])

    def test_list_places_by_user(self):
        user = self._signup()
        first = self._create_place(user).json()["place"]
        second = self._create_place(user, title="Second").json()["place"]

        response = self.client.get(f"/api/places/users/{user['userId']}")
        self.assertEqual(response.status_code, 200)
        ids = [p["id"] for p in response.json()["places"]]
        self.assertCountEqual(ids, [first["id"], second["id"]])

    def test_list_places_for_user_without_places_is_404(self):
        user = self._signup()
        response = self.client.get(f"/api/places/users/{user['userId']}")
        self.assertEqual(response.status_code, 404)
        self.assertIn("message", response.json())

    def test_update_place_by_creator(self):
        user = self._signup()
        place = self._create_place(user).json()["place"]
        response = self.client.patch(
            f"/api/places/{place['id']}",
            json={"title": "Bistro", "description": "Better than before"},
            headers=self._auth(user),
        )
        self.assertEqual(response.status_code, 200)
        updated = response.json()["place"]
        self.assertEqual(updated["title"], "Bistro")
        self.assertEqual(updated["description"], "Better than before")
        self.assertEqual(updated["address"], place["address"])

    def test_update_by_other_user_is_rejected(self):
        owner = self._signup()
        other = self._signup(name="Bob", email="bob@example.com")
        place = self._create_place(owner).json()["place"]

        response = self.client.patch(
            f"/api/places/{place['id']}",
            json={"title": "Hijacked", "description": "Not my place"},
            headers=self._auth(other),
        )
        self.assertEqual(response.status_code, 401)
        stored = self.db.places[place["id"]]
        self.assertEqual(stored.title, "Cafe")
        self.assertEqual(stored.description, "A nice cafe downtown")

    def test_update_unknown_place_is_404(self):
        user = self._signup()
        response = self.client.patch(
            "/api/places/missing",
            json={"title": "Bistro", "description": "Better than before"},
            headers=self._auth(user),
        )
        self.assertEqual(response.status_code, 404)

    def test_update_with_short_description_is_422(self):
        user = self._signup()
        place = self._create_place(user).json()["place"]
        response = self.client.patch(
            f"/api/places/{place['id']}",
            json={"title": "Bistro", "description": "abc"},
            headers=self._auth(user),
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(
            response.json()["message"], "Invalid inputs passed, please check your data."
        )

    def test_delete_by_other_user_is_rejected(self):
        owner = self._signup()
        other = self._signup(name="Bob", email="bob@example.com")
        place = self._create_place(owner).json()["place"]

        response = self.client.delete(
            f"/api/places/{place['id']}", headers=self._auth(other)
        )
        self.assertEqual(response.status_code, 401)
        self.assertIn(place["id"], self.db.places)
        self.assertEqual(self.db.users[owner["userId"]].places, [place["id"]])
        self.assertIn(place["image"], self.storage.stored_objects)

    def test_delete_unknown_place_is_404(self):
        user = self._signup()
        response = self.client.delete("/api/places/missing", headers=self._auth(user))
        self.assertEqual(response.status_code, 404)

    def test_delete_succeeds_when_image_cleanup_fails(self):
        user = self._signup()
        place = self._create_place(user).json()["place"]
        self.storage.delete(place["image"])

        with self.assertLogs("places_api.uploads", level="ERROR"):
            response = self.client.delete(
                f"/api/places/{place['id']}", headers=self._auth(user)
            )
        self.assertEqual(response.status_code, 200)
        self.assertNotIn(place["id"], self.db.places)

    def test_mutations_require_token(self):
        user = self._signup()
        place = self._create_place(user).json()["place"]

        no_header = self.client.delete(f"/api/places/{place['id']}")
        self.assertEqual(no_header.status_code, 401)
        self.assertEqual(no_header.json()["message"], "Authentication failed!")

        bad_token = self.client.patch(
            f"/api/places/{place['id']}",
            json={"title": "Bistro", "description": "Better than before"},
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        self.assertEqual(bad_token.status_code, 401)

        no_bearer = self.client.post(
            "/api/places",
            data={"title": "x", "description": "xxxxx", "address": "y"},
            files={"image": PNG},
            headers={"Authorization": user["token"]},
        )
        self.assertEqual(no_bearer.status_code, 401)
        self.assertIn(place["id"], self.db.places)

    def test_preflight_request_skips_auth(self):
        response = self.client.options(
            "/api/places",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Authorization, Content-Type",
            },
        )
        self.assertEqual(response.status_code, 200)
        self.assertIn("access-control-allow-origin", response.headers)

    def test_unresolvable_address_creates_nothing(self):
        user = self._signup()
        stored_before = dict(self.storage.stored_objects)
        response = self._create_place(user, address="Nowhere at all")
        self.assertEqual(response.status_code, 422)
        self.assertEqual(
            response.json()["message"], "Could not find location for specified address."
        )
        self.assertEqual(self.db.places, {})
        self.assertEqual(self.db.users[user["userId"]].places, [])
        self.assertEqual(self.storage.stored_objects, stored_before)

    def test_create_for_unknown_creator_is_404(self):
        user = self._signup()
        response = self._create_place(user, creator="no-such-user")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.db.places, {})

    def test_create_rejects_unsupported_image_type(self):
        user = self._signup()
        stored_before = dict(self.storage.stored_objects)
        response = self.client.post(
            "/api/places",
            data={
                "title": "Cafe",
                "description": "A nice cafe downtown",
                "address": "1600 Amphitheatre Pkwy",
            },
            files={"image": ("notes.gif", b"GIF89a", "image/gif")},
            headers=self._auth(user),
        )
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["message"], "Invalid mime type.")
        self.assertEqual(self.storage.stored_objects, stored_before)

    def test_create_with_missing_title_is_422(self):
        user = self._signup()
        response = self._create_place(user, title="")
        self.assertEqual(response.status_code, 422)
        self.assertEqual(self.db.places, {})

    def test_create_rolls_back_when_user_update_fails(self):
        user = self._signup()
        stored_before = dict(self.storage.stored_objects)
        with patch.object(
            InMemoryUnitOfWork, "append_user_place", side_effect=RuntimeError("boom")
        ):
            response = self._create_place(user)

        self.assertEqual(response.status_code, 500)
        self.assertEqual(
            response.json()["message"], "Creating place failed, please try again."
        )
        self.assertEqual(self.db.places, {})
        self.assertEqual(self.db.users[user["userId"]].places, [])
        self.assertEqual(self.storage.stored_objects, stored_before)

    def test_delete_rolls_back_when_user_update_fails(self):
        user = self._signup()
        place = self._create_place(user).json()["place"]
        with patch.object(
            InMemoryUnitOfWork, "remove_user_place", side_effect=RuntimeError("boom")
        ):
            response = self.client.delete(
                f"/api/places/{place['id']}", headers=self._auth(user)
            )

        self.assertEqual(response.status_code, 500)
        self.assertIn(place["id"], self.db.places)
        self.assertEqual(self.db.users[user["userId"]].places, [place["id"]])
        self.assertIn(place["image"], self.storage.stored_objects)

    def test_geocoding_transport_failure_is_500(self):
        client = TestClient(self.app, raise_server_exceptions=False)
        user = self._signup()
        self.geocoder.failure = requests.ConnectionError("provider down")

        response = client.post(
            "/api/places",
            data={
                "title": "Cafe",
                "description": "A nice cafe downtown",
                "address": "1600 Amphitheatre Pkwy",
            },
            files={"image": PNG},
            headers=self._auth(user),
        )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["message"], "An unknown error occurred!")
        self.assertEqual(self.db.places, {})

    def test_unknown_route(self):
        response = self.client.get("/api/nothing-here")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "Could not find this route.")


class UserApiTests(unittest.TestCase):
    def setUp(self):
        settings = Settings(
            use_in_memory_backends=True,
            jwt_key="test-secret",
            password_hash_rounds=4,
        )
        self.db = InMemoryDbClient()
        self.storage = InMemoryStorageClient()
        self.client = TestClient(
            create_app(
                settings, db=self.db, storage=self.storage, geocoder=StubGeocoder()
            )
        )

    def _signup(self, email="ada@example.com", password="secret1"):
        return self.client.post(
            "/api/users/signup",
            data={"name": "Ada", "email": email, "password": password},
            files={"image": PNG},
        )

    def test_signup_login_and_list(self):
        signup = self._signup(email="Ada@Example.com")
        self.assertEqual(signup.status_code, 201)
        self.assertEqual(signup.json()["email"], "ada@example.com")
        self.assertTrue(signup.json()["token"])

        login = self.client.post(
            "/api/users/login",
            json={"email": "ada@example.com", "password": "secret1"},
        )
        self.assertEqual(login.status_code, 200)
        self.assertEqual(login.json()["userId"], signup.json()["userId"])

        users = self.client.get("/api/users").json()["users"]
        self.assertEqual(len(users), 1)
        self.assertEqual(users[0]["places"], [])
        self.assertNotIn("password", users[0])

    def test_signup_with_taken_email_is_422(self):
        self.assertEqual(self._signup().status_code, 201)
        stored_before = dict(self.storage.stored_objects)

        response = self._signup()
        self.assertEqual(response.status_code, 422)
        self.assertEqual(
            response.json()["message"], "User exists already, please login instead."
        )
        self.assertEqual(len(self.db.users), 1)
        self.assertEqual(self.storage.stored_objects, stored_before)

    def test_signup_with_short_password_is_422(self):
        response = self._signup(password="abc")
        self.assertEqual(response.status_code, 422)
        self.assertEqual(self.db.users, {})

    def test_login_with_wrong_password(self):
        self._signup()
        response = self.client.post(
            "/api/users/login",
            json={"email": "ada@example.com", "password": "wrong-one"},
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(
            response.json()["message"], "Invalid credentials, could not log you in."
        )


if __name__ == "__main__":
    unittest.main()
