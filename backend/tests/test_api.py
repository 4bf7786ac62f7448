from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from cliproom.core.context import AppContext
from cliproom.main import create_app
from cliproom.models import utcnow
from cliproom.services.lifecycle import RoomLifecycleManager


@pytest.fixture
def app(store, hub, blobs):
    ctx = AppContext(store=store, hub=hub, blobs=blobs, lifecycle=RoomLifecycleManager(store))
    return create_app(ctx, run_sweeper=False)


@pytest.fixture
def client(app):
    return TestClient(app)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_create_and_join(client):
    resp = client.post("/rooms/")
    assert resp.status_code == 201
    code = resp.json()["code"]
    assert len(code) == 6

    joined = client.get(f"/rooms/{code.lower()}")
    assert joined.status_code == 200
    assert joined.json()["code"] == code
    assert joined.json()["text_content"] is None


def test_create_with_code_conflicts(client):
    assert client.post("/rooms/", json={"code": "abc234"}).json()["code"] == "ABC234"
    assert client.post("/rooms/", json={"code": "ABC234"}).status_code == 409


def test_join_errors(client):
    assert client.get("/rooms/ZZZZZZ").status_code == 404
    assert client.get("/rooms/ABC").status_code == 422


def test_patch_text_keeps_image(client, memory_store):
    memory_store.add("ROOM22", utcnow(), image_url="https://img/a.png")

    resp = client.patch("/rooms/room22", json={"text_content": "hello"})

    assert resp.status_code == 200
    assert resp.json()["text_content"] == "hello"
    assert resp.json()["image_url"] == "https://img/a.png"


def test_patch_empty_text_stores_null(client, memory_store):
    memory_store.add("ROOM22", utcnow(), text_content="x")
    assert client.patch("/rooms/ROOM22", json={"text_content": ""}).json()["text_content"] is None


def test_patch_needs_a_field(client, memory_store):
    memory_store.add("ROOM22", utcnow())
    assert client.patch("/rooms/ROOM22", json={}).status_code == 422


def test_image_upload_and_clear(client, memory_store, blobs):
    memory_store.add("ROOM22", utcnow())

    resp = client.post("/rooms/ROOM22/image", files={"file": ("cat.png", b"PNG", "image/png")})
    assert resp.status_code == 200
    url = resp.json()["image_url"]
    key = blobs.key_from_url(url)
    assert key.startswith("ROOM22/") and key.endswith("-cat.png")

    cleared = client.delete("/rooms/ROOM22/image")
    assert cleared.status_code == 200
    assert cleared.json()["image_url"] is None
    assert blobs.deleted == [key]


def test_image_upload_rejects_non_images(client, memory_store):
    memory_store.add("ROOM22", utcnow())
    resp = client.post("/rooms/ROOM22/image", files={"file": ("a.txt", b"hi", "text/plain")})
    assert resp.status_code == 422


def test_image_upload_to_missing_room(client, blobs):
    resp = client.post("/rooms/NOPE22/image", files={"file": ("cat.png", b"PNG", "image/png")})
    assert resp.status_code == 404
    assert blobs.objects == {}


def test_blob_routes(client, blobs):
    resp = client.put("/blobs/ROOM22/1-a.png", content=b"PNG", headers={"Content-Type": "image/png"})
    assert resp.status_code == 200
    assert resp.json()["url"] == blobs.public_url("ROOM22/1-a.png")

    redirect = client.get("/blobs/ROOM22/1-a.png", follow_redirects=False)
    assert redirect.status_code == 307
    assert redirect.headers["location"] == blobs.public_url("ROOM22/1-a.png")

    assert client.delete("/blobs/ROOM22/1-a.png").status_code == 204
    assert blobs.objects == {}


def test_sweep(client, memory_store):
    now = utcnow()
    memory_store.add("OLD222", now - timedelta(hours=25))
    memory_store.add("NEW222", now - timedelta(hours=23))

    assert client.get("/rooms/expired/count").json() == {"count": 1}
    assert client.post("/rooms/sweep").json() == {"count": 1}
    assert set(memory_store.rooms) == {"NEW222"}


def test_ws_unknown_room_is_refused(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws/ZZZZZZ") as ws:
            ws.receive_json()
    assert exc.value.code == 4404


def test_ws_pushes_room_updates(app, memory_store):
    memory_store.add("ROOM22", utcnow())
    with TestClient(app) as client:
        with client.websocket_connect("/ws/room22") as ws:
            welcome = ws.receive_json()
            assert welcome["type"] == "welcome"
            assert welcome["room"]["code"] == "ROOM22"

            client.patch("/rooms/ROOM22", json={"text_content": "from laptop"})
            event = ws.receive_json()

    assert event["type"] == "room_updated"
    assert event["room"]["text_content"] == "from laptop"
