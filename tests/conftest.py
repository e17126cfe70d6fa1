"""
Pytest configuration and shared fixtures
"""
import pytest
import mongomock
from fastapi.testclient import TestClient

from auth import InvalidTokenError
from config import Settings
from main import create_app

OWNER = "owner@mail.com"
RENTER = "renter@mail.com"
OTHER = "other@mail.com"


class FakeVerifier:
    """Accepts tokens of the form "token-<email>" for a known set of emails"""

    def __init__(self, *emails):
        self.tokens = {f"token-{email}": email for email in emails}
        self.calls = []

    def verify(self, token: str) -> str:
        self.calls.append(token)
        if token not in self.tokens:
            raise InvalidTokenError("unknown token")
        return self.tokens[token]


def auth(email: str) -> dict:
    return {"Authorization": f"Bearer token-{email}"}


@pytest.fixture(autouse=True)
def reset_env_vars(monkeypatch):
    """Keep the developer's environment out of the settings under test"""
    for key in [
        "DATABASE_URL", "DATABASE_NAME", "JWT_SECRET", "JWT_ALGORITHM",
        "JWT_AUDIENCE", "JWT_ISSUER", "CORS_ORIGINS", "LOG_LEVEL", "PORT",
    ]:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def mongo_client():
    return mongomock.MongoClient()


@pytest.fixture
def verifier():
    return FakeVerifier(OWNER, RENTER, OTHER)


@pytest.fixture
def app(mongo_client, verifier):
    return create_app(settings=Settings(), client=mongo_client, verifier=verifier)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(mongo_client):
    """Raw handle on the database the app writes to"""
    return mongo_client[Settings().DATABASE_NAME]


@pytest.fixture
def sample_car():
    return {
        "name": "Toyota Camry",
        "category": "Sedan",
        "rentalPrice": 55,
        "image": "https://img.example.org/camry.jpg",
        "description": "Comfortable mid-size sedan",
        "rating": 4.5,
        "status": True,
        "providerName": "Owner",
        "providerEmail": OWNER,
        "createdAt": "2024-03-01T10:00:00",
        "location": "Dhaka",
    }


@pytest.fixture
def sample_booking():
    return {
        "carId": "65f1c0ffee0000000000abcd",
        "userEmail": RENTER,
        "carName": "Toyota Camry",
        "carImage": "https://img.example.org/camry.jpg",
        "category": "Sedan",
        "rentalPrice": 55,
        "bookedAt": "2024-03-02T09:00:00",
    }


@pytest.fixture
def create_car(client, sample_car):
    """Insert a car through the API and return its id"""
    def _create(**overrides):
        payload = {**sample_car, **overrides}
        owner = payload.get("providerEmail", OWNER)
        resp = client.post("/newCar", json=payload, headers=auth(owner))
        assert resp.status_code == 200, resp.text
        return resp.json()["insertedId"]
    return _create
