import abc
import inspect
import logging
import uuid
from datetime import datetime
from typing import Awaitable, Callable, Dict, List
from ..schemas.room import RoomOut
from .rooms import RoomStore

logger = logging.getLogger(__name__)

OnUpdate = Callable[[RoomOut], Awaitable[None] | None]


class Subscription:
    """Handle for one listener on one room channel.

    After ``close()`` the listener is never called again, including for
    events the transport had already queued. ``stalled`` is set when the
    transport gave up while the subscription was still open.
    """

    def __init__(self, code: str, on_update: OnUpdate, on_close: Callable[["Subscription"], None] | None = None):
        self.code = code
        self.on_update = on_update
        self.sub_id = str(uuid.uuid4())
        self.closed = False
        self.stalled = False
        self._on_close = on_close

    async def deliver(self, room: RoomOut) -> bool:
        if self.closed:
            return False
        result = self.on_update(room)
        if inspect.isawaitable(result):
            await result
        return True

    def close(self):
        if self.closed:
            return
        self.closed = True
        if self._on_close is not None:
            self._on_close(self)


class ChangeNotifier(abc.ABC):
    @abc.abstractmethod
    def subscribe(self, code: str, on_update: OnUpdate) -> Subscription:
        ...


class RoomHub(ChangeNotifier):
    """In-process fan-out of committed room rows, one channel per room code."""

    def __init__(self):
        self.channels: Dict[str, List[Subscription]] = {}

    def subscribe(self, code: str, on_update: OnUpdate) -> Subscription:
        sub = Subscription(code, on_update, on_close=self._remove)
        self.channels.setdefault(code, []).append(sub)
        logger.info("channel.subscribed code=%s sub_id=%s", code, sub.sub_id)
        return sub

    def _remove(self, sub: Subscription):
        subs = self.channels.get(sub.code, [])
        if sub in subs:
            subs.remove(sub)
        if not subs:
            self.channels.pop(sub.code, None)
        logger.info("channel.closed code=%s sub_id=%s", sub.code, sub.sub_id)

    def subscriber_count(self, code: str) -> int:
        return len(self.channels.get(code, []))

    async def publish(self, room: RoomOut) -> int:
        delivered = 0
        for sub in list(self.channels.get(room.code, [])):
            try:
                if await sub.deliver(room):
                    delivered += 1
            except Exception:
                # drop listeners that fail (dead websockets and the like)
                logger.exception("channel.deliver_failed code=%s sub_id=%s", room.code, sub.sub_id)
                sub.close()
        return delivered


class PublishingRoomStore(RoomStore):
    """Wraps a store so every committed update is announced on the room's channel."""

    def __init__(self, store: RoomStore, hub: RoomHub):
        self.store = store
        self.hub = hub

    async def insert(self, room: RoomOut) -> RoomOut:
        return await self.store.insert(room)

    async def get(self, code: str) -> RoomOut:
        return await self.store.get(code)

    async def update(self, code: str, fields: dict, timestamp: datetime) -> RoomOut:
        room = await self.store.update(code, fields, timestamp)
        await self.hub.publish(room)
        return room

    async def delete_where(self, created_before: datetime) -> int:
        return await self.store.delete_where(created_before)

    async def count_where(self, created_before: datetime) -> int:
        return await self.store.count_where(created_before)
