import asyncio
from datetime import timedelta

import pytest

from cliproom.core.errors import DuplicateKeyError, RoomNotFoundError
from cliproom.schemas.room import RoomOut
from .conftest import NOW


def new_room(code="ROOM22", created_at=NOW):
    return RoomOut(code=code, last_updated=created_at, created_at=created_at)


def test_insert_and_get(sql_store):
    asyncio.run(sql_store.insert(new_room()))
    room = asyncio.run(sql_store.get("ROOM22"))

    assert room.code == "ROOM22"
    assert room.text_content is None
    assert room.created_at == NOW


def test_lookup_is_case_exact(sql_store):
    asyncio.run(sql_store.insert(new_room()))
    with pytest.raises(RoomNotFoundError):
        asyncio.run(sql_store.get("room22"))


def test_duplicate_code(sql_store):
    asyncio.run(sql_store.insert(new_room()))
    with pytest.raises(DuplicateKeyError):
        asyncio.run(sql_store.insert(new_room()))


def test_text_update_keeps_image(sql_store):
    later = NOW + timedelta(minutes=5)

    async def scenario():
        await sql_store.insert(new_room())
        await sql_store.update("ROOM22", {"image_url": "https://img/1.png"}, NOW)
        return await sql_store.update("ROOM22", {"text_content": "hello"}, later)

    room = asyncio.run(scenario())
    assert room.text_content == "hello"
    assert room.image_url == "https://img/1.png"
    assert room.last_updated == later


def test_image_update_keeps_text(sql_store):
    async def scenario():
        await sql_store.insert(new_room())
        await sql_store.update("ROOM22", {"text_content": "keep me"}, NOW)
        return await sql_store.update("ROOM22", {"image_url": None}, NOW)

    room = asyncio.run(scenario())
    assert room.text_content == "keep me"
    assert room.image_url is None


def test_update_missing_room(sql_store):
    with pytest.raises(RoomNotFoundError):
        asyncio.run(sql_store.update("NOPE22", {"text_content": "x"}, NOW))


def test_update_rejects_unknown_fields(sql_store):
    asyncio.run(sql_store.insert(new_room()))
    with pytest.raises(ValueError):
        asyncio.run(sql_store.update("ROOM22", {"code": "OTHER1"}, NOW))


def test_delete_where(sql_store):
    async def scenario():
        await sql_store.insert(new_room("OLD222", NOW - timedelta(hours=30)))
        await sql_store.insert(new_room("NEW222", NOW))
        counted = await sql_store.count_where(NOW - timedelta(hours=24))
        deleted = await sql_store.delete_where(NOW - timedelta(hours=24))
        return counted, deleted

    assert asyncio.run(scenario()) == (1, 1)
    assert asyncio.run(sql_store.get("NEW222")).code == "NEW222"
