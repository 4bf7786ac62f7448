"""Client-side view of one room kept in step with its change channel.

A session takes a baseline snapshot with a point read, then subscribes to
the room's channel and replaces the whole snapshot with every row it is
sent. Writers only ever touch the field they changed (plus the timestamp),
so the column-level update in the store is what keeps text and image edits
from clobbering each other; the session never merges fields itself.

Text edits are optimistic and debounced. While the local editor has focus
the echoed row does not overwrite what the user is typing.
"""
import asyncio
import logging
import time
from datetime import datetime
from typing import Callable
from ..core.config import settings
from ..core.errors import ClipRoomError
from ..models import utcnow
from ..schemas.room import RoomOut
from ..stores.notifier import ChangeNotifier, Subscription
from ..stores.rooms import RoomStore
from .debounce import Debouncer
from .guard import bounded, watch
from .notifications import Notify, from_error, ignore, success

logger = logging.getLogger(__name__)


class RoomSession:
    def __init__(
        self,
        code: str,
        store: RoomStore,
        notifier: ChangeNotifier,
        notify: Notify = ignore,
        clock: Callable[[], datetime] = utcnow,
        monotonic: Callable[[], float] = time.monotonic,
        debounce_seconds: float | None = None,
        timeout: float | None = None,
    ):
        self.code = code
        self.store = store
        self.notifier = notifier
        self.notify = notify
        self.clock = clock
        self.timeout = timeout if timeout is not None else settings.operation_timeout_seconds
        if debounce_seconds is None:
            debounce_seconds = settings.text_debounce_ms / 1000
        self.debouncer: Debouncer[str] = Debouncer(debounce_seconds, self._write_text, clock=monotonic)

        self.room: RoomOut | None = None
        self.text = ""
        self.text_focused = False
        self.is_updating = False
        self.last_event_at: datetime | None = None
        self.listeners: list[Callable[[RoomOut], None]] = []
        self._subscription: Subscription | None = None
        self._timer: asyncio.Task | None = None
        self._write_lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._subscription is not None and not self._subscription.closed

    async def open(self, start_timer: bool = True) -> RoomOut | None:
        try:
            room = await bounded(self.store.get(self.code), self.timeout, "room lookup")
        except ClipRoomError as exc:
            logger.warning("session.open_failed code=%s error=%s", self.code, exc)
            self.notify(from_error(exc))
            return None
        self._replace(room, force_text=True)
        self._subscription = self.notifier.subscribe(self.code, self.apply)
        if start_timer:
            self._timer = watch(asyncio.create_task(self.debouncer.run()), f"text debounce {self.code}")
        logger.info("session.opened code=%s", self.code)
        return room

    def apply(self, room: RoomOut):
        if room.code != self.code:
            logger.warning("session.foreign_event code=%s event_code=%s", self.code, room.code)
            return
        self.last_event_at = self.clock()
        self._replace(room)

    def _replace(self, room: RoomOut, force_text: bool = False):
        self.room = room
        if force_text or not (self.text_focused or self.debouncer.pending):
            self.text = room.text_content or ""
        for listener in list(self.listeners):
            listener(room)

    @property
    def channel_stalled(self) -> bool:
        """True once the transport gave up; ``refresh()`` is then the only way to catch up."""
        return self._subscription is not None and self._subscription.stalled

    async def close(self):
        try:
            # the timer may be mid-write; let it finish before cancelling it
            await self.debouncer.drain()
        finally:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if self._subscription is not None:
                self._subscription.close()
            logger.info("session.closed code=%s", self.code)

    # --- refresh (recovery when the channel stalls) ---

    async def refresh(self) -> RoomOut | None:
        try:
            room = await bounded(self.store.get(self.code), self.timeout, "refresh")
        except ClipRoomError as exc:
            self.notify(from_error(exc, "Refresh failed"))
            return None
        self._replace(room, force_text=True)
        return room

    async def refresh_text(self) -> str | None:
        room = await self.refresh()
        if room is None:
            return None
        self.notify(success("Text refreshed", "Latest content has been loaded"))
        return self.text

    async def refresh_image(self) -> str | None:
        room = await self.refresh()
        if room is None:
            return None
        self.notify(success("Image refreshed", "Latest image has been loaded"))
        return room.image_url

    # --- text writes ---

    def edit_text(self, value: str):
        self.text = value
        self.debouncer.push(value)

    async def _write_text(self, value: str) -> bool:
        # writes are serialized so a later edit always lands after an earlier one
        async with self._write_lock:
            self.is_updating = True
            try:
                await bounded(
                    self.store.update(self.code, {"text_content": value or None}, self.clock()),
                    self.timeout,
                    "text update",
                )
                logger.info("session.text_written code=%s length=%s", self.code, len(value))
                return True
            except ClipRoomError as exc:
                # local text stays editable; no rollback
                logger.warning("session.text_write_failed code=%s error=%s", self.code, exc)
                self.notify(from_error(exc, "Failed to update text"))
                return False
            except Exception as exc:
                logger.exception("session.text_write_failed code=%s", self.code)
                self.notify(from_error(exc, "Failed to update text"))
                return False
            finally:
                self.is_updating = False

    async def clear_text(self) -> bool:
        self.debouncer.cancel()
        self.text = ""
        ok = await self._write_text("")
        if ok:
            self.notify(success("Text cleared", "Text has been cleared from the room"))
        return ok

    def set_image_url(self, image_url: str | None):
        """Local optimistic image change made by this client's image controller."""
        if self.room is not None:
            self.room = self.room.model_copy(update={"image_url": image_url, "last_updated": self.clock()})
