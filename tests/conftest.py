import mongomock
import pytest
from fastapi.testclient import TestClient

from auth import create_token, hash_password
from database import create_document
from main import create_app
from schemas import User

PASSWORD = "Str0ng!Pass"


@pytest.fixture
def db():
    return mongomock.MongoClient()["tshirt_test"]


@pytest.fixture
def client(db):
    return TestClient(create_app(database=db))


@pytest.fixture
def make_user(db):
    def _make(email="shopper@example.com", password=PASSWORD, is_admin=False, **extra):
        user = User(
            name=extra.pop("name", "Shopper"),
            email=email,
            password=hash_password(password),
            is_admin=is_admin,
            role="admin" if is_admin else "user",
            **extra,
        )
        user_id = create_document(db, "user", user)
        return db["user"].find_one({"email": email}), user_id
    return _make


def auth_header(user_id):
    return {"Authorization": f"Bearer {create_token(user_id)}"}


@pytest.fixture
def user_headers(make_user):
    _, user_id = make_user()
    return auth_header(user_id)


@pytest.fixture
def admin_headers(make_user):
    _, user_id = make_user(email="boss@example.com", is_admin=True, name="Boss")
    return auth_header(user_id)
