import io
import os

os.environ.setdefault("JWT_SECRET", "test-secret-key-0123456789abcdef0123456789")

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import ensure_indexes, get_db
from main import app
from media import MediaStore, get_media


class FakeMedia(MediaStore):
    """Records uploads and deletions instead of talking to Cloudinary."""

    def __init__(self):
        self.uploaded = []
        self.destroyed = []
        self.fail_destroy = False
        self.fail_upload_types = set()
        self._counter = 0

    def upload(self, file, resource_type="image"):
        if resource_type in self.fail_upload_types:
            raise RuntimeError("media provider unavailable")
        self._counter += 1
        asset_id = f"{resource_type}-{self._counter}"
        file.file.read()
        self.uploaded.append((asset_id, resource_type))
        return {"url": f"https://media.test/{asset_id}", "asset_id": asset_id}

    def destroy(self, asset_id, resource_type="image"):
        if self.fail_destroy:
            raise RuntimeError("media provider unavailable")
        self.destroyed.append((asset_id, resource_type))


@pytest.fixture
def mongo_db():
    database = mongomock.MongoClient()["vidshare_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def media():
    return FakeMedia()


@pytest.fixture
def client(mongo_db, media):
    app.dependency_overrides[get_db] = lambda: mongo_db
    app.dependency_overrides[get_media] = lambda: media
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def signup(client):
    def _signup(channel_name="chan", email="a@x.com", password="pw", phone="555", with_logo=True):
        files = {"logoUrl": ("logo.png", io.BytesIO(b"\x89PNG"), "image/png")} if with_logo else None
        return client.post(
            "/user/signup",
            data={"channelName": channel_name, "email": email, "phone": phone, "password": password},
            files=files,
        )
    return _signup


@pytest.fixture
def make_account(client, signup):
    """Register and log in, returning id, token and auth headers."""
    def _make(channel_name, email, password="pw"):
        assert signup(channel_name, email, password).status_code == 200
        response = client.post("/user/login", json={"email": email, "password": password})
        assert response.status_code == 200
        body = response.json()
        return {
            "id": body["id"],
            "token": body["token"],
            "headers": {"Authorization": f"Bearer {body['token']}"},
        }
    return _make


@pytest.fixture
def alice(make_account):
    return make_account("alice", "alice@x.com")


@pytest.fixture
def bob(make_account):
    return make_account("bob", "bob@x.com")


@pytest.fixture
def upload_video(client):
    def _upload(account, title="My clip", tags="music, live,music", category="music", with_thumbnail=True):
        files = {"video": ("clip.mp4", io.BytesIO(b"video-bytes"), "video/mp4")}
        if with_thumbnail:
            files["thumbnail"] = ("thumb.jpg", io.BytesIO(b"jpeg-bytes"), "image/jpeg")
        return client.post(
            "/video/upload",
            headers=account["headers"],
            data={"title": title, "description": "desc", "category": category, "tags": tags},
            files=files,
        )
    return _upload
