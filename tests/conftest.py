import itertools

import mongomock
import pytest
from fastapi.testclient import TestClient

from cascade import CascadeDeleter
from config import get_settings
from database import ensure_indexes, get_db
from limiter import limiter
from main import app
from security import TokenService
from storage import AssetStoreError, get_asset_store


class FakeAssetStore:
    """Stands in for Cloudinary: hands out public ids and records deletes."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.live = set()
        self.deleted = []
        self.failing = set()
        # None means unlimited; otherwise uploads after this many fail
        self.uploads_left = None

    def upload(self, file, resource_type="auto"):
        if self.uploads_left is not None:
            if self.uploads_left == 0:
                raise AssetStoreError("upload failed")
            self.uploads_left -= 1
        public_id = f"asset-{next(self._ids)}"
        self.live.add(public_id)
        return {
            "url": f"https://assets.example.com/{public_id}",
            "public_id": public_id,
            "duration": 42.0 if resource_type == "video" else None,
        }

    def delete(self, public_id, resource_type="image"):
        if not public_id:
            return "skipped"
        if public_id in self.failing:
            raise AssetStoreError(f"destroy failed for {public_id}")
        self.deleted.append((public_id, resource_type))
        self.live.discard(public_id)
        return "ok"


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield


@pytest.fixture
def db():
    database = mongomock.MongoClient()["video_sharing_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def assets():
    return FakeAssetStore()


@pytest.fixture
def deleter(db, assets):
    return CascadeDeleter(db, assets)


@pytest.fixture
def tokens():
    return TokenService(get_settings())


@pytest.fixture
def client(db, assets):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_asset_store] = lambda: assets
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def auth(tokens):
    def _auth(user):
        return {"Authorization": f"Bearer {tokens.issue_access_token(user)}"}
    return _auth
