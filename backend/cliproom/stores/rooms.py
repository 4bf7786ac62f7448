import abc
import asyncio
import logging
from datetime import datetime
from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from ..core.errors import RoomNotFoundError, DuplicateKeyError, BackendError, NetworkError
from ..models import Room
from ..schemas.room import RoomOut

logger = logging.getLogger(__name__)

# Columns a room update may touch besides last_updated
ROOM_FIELDS = ("text_content", "image_url")


def check_fields(fields: dict) -> dict:
    unknown = set(fields) - set(ROOM_FIELDS)
    if unknown:
        raise ValueError(f"Unknown room fields: {sorted(unknown)}")
    if not fields:
        raise ValueError("Room update needs at least one field")
    return fields


class RoomStore(abc.ABC):
    """Keyed table of rooms.

    ``update`` is a column-level write: only the named fields and
    ``last_updated`` change, every other column keeps its committed value.
    """

    @abc.abstractmethod
    async def insert(self, room: RoomOut) -> RoomOut:
        """Raises DuplicateKeyError when the code is taken."""

    @abc.abstractmethod
    async def get(self, code: str) -> RoomOut:
        """Exact-match lookup. Raises RoomNotFoundError."""

    @abc.abstractmethod
    async def update(self, code: str, fields: dict, timestamp: datetime) -> RoomOut:
        """Returns the committed row. Raises RoomNotFoundError or BackendError."""

    @abc.abstractmethod
    async def delete_where(self, created_before: datetime) -> int:
        ...

    @abc.abstractmethod
    async def count_where(self, created_before: datetime) -> int:
        ...


class SqlRoomStore(RoomStore):
    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def _run(self, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except OperationalError as exc:
            logger.exception("rooms.db_unreachable")
            raise NetworkError("Database is unreachable") from exc
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            logger.exception("rooms.db_error")
            raise BackendError(str(exc)) from exc

    async def insert(self, room: RoomOut) -> RoomOut:
        try:
            return await self._run(self._insert, room)
        except IntegrityError as exc:
            raise DuplicateKeyError(room.code) from exc

    def _insert(self, room: RoomOut) -> RoomOut:
        db = self.session_factory()
        try:
            row = Room(
                code=room.code,
                text_content=room.text_content,
                image_url=room.image_url,
                last_updated=room.last_updated,
                created_at=room.created_at,
            )
            db.add(row)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise
            db.refresh(row)
            return RoomOut.model_validate(row)
        finally:
            db.close()

    async def get(self, code: str) -> RoomOut:
        return await self._run(self._get, code)

    def _get(self, code: str) -> RoomOut:
        db = self.session_factory()
        try:
            row = db.execute(select(Room).where(Room.code == code)).scalar_one_or_none()
            if row is None:
                raise RoomNotFoundError(code)
            return RoomOut.model_validate(row)
        finally:
            db.close()

    async def update(self, code: str, fields: dict, timestamp: datetime) -> RoomOut:
        check_fields(fields)
        return await self._run(self._update, code, dict(fields), timestamp)

    def _update(self, code: str, fields: dict, timestamp: datetime) -> RoomOut:
        db = self.session_factory()
        try:
            result = db.execute(
                update(Room)
                .where(Room.code == code)
                .values(**fields, last_updated=timestamp)
            )
            if result.rowcount == 0:
                db.rollback()
                raise RoomNotFoundError(code)
            db.commit()
            row = db.execute(select(Room).where(Room.code == code)).scalar_one()
            return RoomOut.model_validate(row)
        finally:
            db.close()

    async def delete_where(self, created_before: datetime) -> int:
        return await self._run(self._delete_where, created_before)

    def _delete_where(self, created_before: datetime) -> int:
        db = self.session_factory()
        try:
            result = db.execute(delete(Room).where(Room.created_at < created_before))
            db.commit()
            return result.rowcount or 0
        finally:
            db.close()

    async def count_where(self, created_before: datetime) -> int:
        return await self._run(self._count_where, created_before)

    def _count_where(self, created_before: datetime) -> int:
        db = self.session_factory()
        try:
            return db.execute(
                select(func.count()).select_from(Room).where(Room.created_at < created_before)
            ).scalar_one()
        finally:
            db.close()
