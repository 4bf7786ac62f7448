from datetime import datetime
from typing import Callable
from ..core.errors import ClipRoomError
from ..models import utcnow
from ..schemas.room import RoomOut
from ..stores.blobs import BlobStore
from ..stores.notifier import ChangeNotifier
from ..stores.rooms import RoomStore
from . import clipboard as clip
from .images import ImageController
from .lifecycle import RoomLifecycleManager
from .notifications import Notification, Notify, from_error, ignore, success
from .sync import RoomSession


class HomeView:
    def __init__(self, lifecycle: RoomLifecycleManager, notify: Notify = ignore):
        self.lifecycle = lifecycle
        self.notify = notify
        self.is_creating = False
        self.is_joining = False

    async def create_room(self) -> RoomOut | None:
        if self.is_creating:
            return None
        self.is_creating = True
        try:
            room = await self.lifecycle.create_room()
        except ClipRoomError as exc:
            self.notify(from_error(exc, "Failed to create room"))
            return None
        finally:
            self.is_creating = False
        self.notify(success("Room created", f"Room code: {room.code}"))
        return room

    async def join_room(self, code: str) -> RoomOut | None:
        if self.is_joining:
            return None
        self.is_joining = True
        try:
            return await self.lifecycle.resolve_room(code)
        except ClipRoomError as exc:
            self.notify(from_error(exc))
            return None
        finally:
            self.is_joining = False


class RoomView:
    """Text pane and image pane of one room, wired to the same channel."""

    def __init__(
        self,
        code: str,
        store: RoomStore,
        notifier: ChangeNotifier,
        blobs: BlobStore,
        clipboard: clip.Clipboard,
        notify: Notify = ignore,
        clock: Callable[[], datetime] = utcnow,
        **session_kwargs,
    ):
        self.code = code
        self.clipboard = clipboard
        self.notify = notify
        self.session = RoomSession(code, store, notifier, notify=notify, clock=clock, **session_kwargs)
        self.images = ImageController(
            code, store, blobs,
            notify=notify,
            on_change=self.session.set_image_url,
            clock=clock,
            timeout=self.session.timeout,
        )

    @property
    def room(self) -> RoomOut | None:
        return self.session.room

    async def open(self, start_timer: bool = True) -> bool:
        room = await self.session.open(start_timer=start_timer)
        if room is None:
            return False
        self.images.sync(room)
        self.session.listeners.append(self.images.sync)
        return True

    async def close(self):
        await self.session.close()

    async def copy_room_code(self) -> bool:
        if await clip.copy_text(self.clipboard, self.code):
            self.notify(success("Room code copied", "Share this code with your other devices"))
            return True
        self.notify(Notification("error", "Copy failed", "Failed to copy room code"))
        return False

    async def copy_text(self) -> bool:
        text = self.session.text
        if not text.strip():
            return False
        if await clip.copy_text(self.clipboard, text):
            self.notify(success("Text copied", "Text has been copied to your clipboard"))
            return True
        self.notify(Notification("error", "Copy failed", "Failed to copy text to clipboard"))
        return False
