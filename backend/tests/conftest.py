import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("S3_REGION", "us-east-1")
os.environ.setdefault("S3_ACCESS_KEY", "test")
os.environ.setdefault("S3_SECRET_KEY", "test")

from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import sessionmaker

from cliproom.db.session import Base, make_engine
from cliproom.stores import RoomHub, PublishingRoomStore, SqlRoomStore
from .fakes import InMemoryRoomStore, InMemoryBlobStore, FakeClipboard, Ticker, Clock

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def session_factory():
    engine = make_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def sql_store(session_factory):
    return SqlRoomStore(session_factory)


@pytest.fixture
def memory_store():
    return InMemoryRoomStore()


@pytest.fixture
def hub():
    return RoomHub()


@pytest.fixture
def store(memory_store, hub):
    return PublishingRoomStore(memory_store, hub)


@pytest.fixture
def blobs():
    return InMemoryBlobStore()


@pytest.fixture
def clipboard():
    return FakeClipboard()


@pytest.fixture
def clock():
    return Clock(NOW)


@pytest.fixture
def ticker():
    return Ticker()


@pytest.fixture
def notes():
    return []
