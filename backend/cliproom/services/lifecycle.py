import asyncio
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable
from ..core.config import settings
from ..core.errors import (
    ClipRoomError, DuplicateKeyError, InvalidRoomCodeError, RoomCreationError,
)
from ..models import utcnow
from ..schemas.room import RoomOut
from ..stores.rooms import RoomStore

logger = logging.getLogger(__name__)

# Uppercase alphanumerics without the look-alikes 0/O and 1/I
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_code(length: int | None = None) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length or settings.room_code_length))


def normalize_code(code: str, length: int | None = None) -> str:
    length = length or settings.room_code_length
    canonical = (code or "").strip().upper()
    if len(canonical) != length:
        raise InvalidRoomCodeError(f"Room code must be {length} characters long")
    if not canonical.isalnum() or not canonical.isascii():
        raise InvalidRoomCodeError("Room code may only contain letters and digits")
    return canonical


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RoomLifecycleManager:
    def __init__(
        self,
        store: RoomStore,
        code_factory: Callable[[], str] | None = None,
        max_attempts: int | None = None,
        retention: timedelta | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.code_factory = code_factory or generate_code
        self.max_attempts = max_attempts or settings.room_code_max_attempts
        self.retention = retention or timedelta(hours=settings.room_retention_hours)
        self.clock = clock

    async def create_room(self) -> RoomOut:
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            code = self.code_factory()
            now = self.clock()
            try:
                room = await self.store.insert(RoomOut(code=code, last_updated=now, created_at=now))
            except DuplicateKeyError as exc:
                logger.warning("room.code_collision code=%s attempt=%s", code, attempt)
                last_error = exc
                continue
            except ClipRoomError as exc:
                logger.error("room.create_failed code=%s error=%s", code, exc)
                raise RoomCreationError(f"Failed to create room: {exc.message}") from exc
            logger.info("room.created code=%s attempt=%s", room.code, attempt)
            return room
        raise RoomCreationError(
            f"Could not find a free room code after {self.max_attempts} attempts"
        ) from last_error

    async def resolve_room(self, code: str) -> RoomOut:
        return await self.store.get(normalize_code(code))

    def expiry_threshold(self, now: datetime | None = None) -> datetime:
        return as_utc(now or self.clock()) - self.retention

    def is_expired(self, room: RoomOut, now: datetime | None = None) -> bool:
        return as_utc(now or self.clock()) - as_utc(room.created_at) >= self.retention

    async def sweep_expired(self, now: datetime | None = None) -> int:
        threshold = self.expiry_threshold(now)
        deleted = await self.store.delete_where(threshold)
        logger.info("room.sweep deleted=%s threshold=%s", deleted, threshold.isoformat())
        return deleted

    async def count_expired(self, now: datetime | None = None) -> int:
        return await self.store.count_where(self.expiry_threshold(now))

    async def run_periodic_sweep(self, interval: float | None = None):
        interval = interval or settings.cleanup_interval_seconds
        while True:
            try:
                await self.sweep_expired()
            except Exception:
                logger.exception("room.sweep_failed")
            await asyncio.sleep(interval)
