import itertools

import mongomock
import pytest
from fastapi.testclient import TestClient

import auth
import store
from server import app


@pytest.fixture()
def db():
    database = mongomock.MongoClient()["tateematy_test"]
    store.ensure_indexes(database)
    return database


@pytest.fixture()
def client(db):
    app.dependency_overrides[store.get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db):
    counter = itertools.count()

    def _make(user_type="parent", **extra):
        n = next(counter)
        data = {
            "fullName": f"Test {user_type} {n}",
            "email": f"{user_type}{n}@example.com",
            "userType": user_type,
            "passwordHash": auth.hash_password("secret-pass"),
            **extra,
        }
        return store.create_user(db, data)

    return _make


@pytest.fixture()
def parent(make_user):
    return make_user("parent", fullName="Sara Alharbi", mobile="+966500000001")


@pytest.fixture()
def provider(make_user):
    return make_user("healthcare_provider")


@pytest.fixture()
def admin(make_user):
    return make_user("admin")
