import mongomock
import pytest
from fastapi.testclient import TestClient

import main
from database import DocumentStore
from profiles import ProfileStore


@pytest.fixture
def store():
    return DocumentStore(mongomock.MongoClient()["skillswap_test"])


@pytest.fixture
def make_user(store):
    profiles = ProfileStore(store)

    def make(name, skills=(), wants_to_learn=()):
        return profiles.create(name, f"{name.lower()}@example.com", "not-a-real-hash", skills, wants_to_learn)

    return make


@pytest.fixture
def client(store):
    main.app.dependency_overrides[main.get_store] = lambda: store
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()
