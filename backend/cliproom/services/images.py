import enum
import logging
import posixpath
from datetime import datetime
from pathlib import Path
from typing import Callable
from urllib.parse import unquote, urlparse
from ..core.config import settings
from ..core.errors import ClipRoomError, UploadError, UploadInProgressError, StorageDeleteError
from ..models import utcnow
from ..schemas.room import RoomOut
from ..stores.blobs import BlobStore
from ..stores.rooms import RoomStore
from . import clipboard as clip
from .guard import bounded
from .notifications import Notification, NotificationAction, Notify, from_error, ignore, success

logger = logging.getLogger(__name__)


class ImageState(str, enum.Enum):
    empty = "empty"
    uploading = "uploading"
    present = "present"
    clearing = "clearing"


def image_key(code: str, filename: str, now: datetime) -> str:
    name = posixpath.basename((filename or "").replace("\\", "/")) or "pasted-image.png"
    return f"{code}/{int(now.timestamp() * 1000)}-{name}"


def key_for_url(blobs: BlobStore, code: str, url: str) -> str:
    key = blobs.key_from_url(url)
    if key:
        return key
    name = posixpath.basename(unquote(urlparse(url).path))
    return f"{code}/{name}"


async def publish_image(store: RoomStore, blobs: BlobStore, code: str, filename: str, data: bytes,
                        content_type: str, now: datetime) -> RoomOut:
    """Upload the blob, then point the room at it.

    The previous image is left in storage. If the room update fails after
    the upload succeeded, the new blob is orphaned and the room keeps its
    old image_url.
    """
    if not (content_type or "").startswith("image/"):
        raise UploadError("Only image files can be shared")
    key = image_key(code, filename, now)
    try:
        await blobs.put(key, data, content_type)
    except ClipRoomError as exc:
        raise UploadError("Failed to upload image. Please try again.") from exc
    url = blobs.public_url(key)
    try:
        room = await store.update(code, {"image_url": url}, now)
    except ClipRoomError as exc:
        logger.warning("image.orphaned code=%s key=%s error=%s", code, key, exc)
        raise UploadError("Failed to update room. Please try again.") from exc
    logger.info("image.published code=%s key=%s", code, key)
    return room


async def remove_image(store: RoomStore, blobs: BlobStore, code: str, image_url: str | None,
                       now: datetime) -> RoomOut:
    if image_url:
        key = key_for_url(blobs, code, image_url)
        try:
            await blobs.delete(key)
        except ClipRoomError as exc:
            err = StorageDeleteError(f"{key}: {exc.message}")
            logger.warning("image.storage_delete_failed code=%s key=%s error=%s", code, key, err)
    room = await store.update(code, {"image_url": None}, now)
    logger.info("image.cleared code=%s", code)
    return room


class ImageController:
    """Single image slot of one room, as seen by one client."""

    def __init__(
        self,
        code: str,
        store: RoomStore,
        blobs: BlobStore,
        notify: Notify = ignore,
        image_url: str | None = None,
        on_change: Callable[[str | None], None] | None = None,
        clock: Callable[[], datetime] = utcnow,
        timeout: float | None = None,
        fetch: clip.Fetch = clip.fetch_image,
    ):
        self.code = code
        self.store = store
        self.blobs = blobs
        self.notify = notify
        self.on_change = on_change
        self.clock = clock
        self.timeout = timeout if timeout is not None else settings.operation_timeout_seconds
        self.fetch = fetch
        self.image_url = image_url
        self.state = ImageState.present if image_url else ImageState.empty

    @property
    def is_uploading(self) -> bool:
        return self.state == ImageState.uploading

    def _settle(self, image_url: str | None):
        self.image_url = image_url
        self.state = ImageState.present if image_url else ImageState.empty

    def sync(self, room: RoomOut):
        # a row from the channel; in-flight operations settle on their own
        if self.state in (ImageState.uploading, ImageState.clearing):
            return
        self._settle(room.image_url)

    async def upload(self, filename: str, data: bytes, content_type: str) -> bool:
        if self.state in (ImageState.uploading, ImageState.clearing):
            self.notify(from_error(UploadInProgressError("Wait for the current image operation to finish")))
            return False
        if not (content_type or "").startswith("image/"):
            self.notify(from_error(UploadError("Only image files can be shared")))
            return False
        previous = self.image_url
        self.state = ImageState.uploading
        try:
            room = await bounded(
                publish_image(self.store, self.blobs, self.code, filename, data, content_type, self.clock()),
                self.timeout,
                "image upload",
            )
        except ClipRoomError as exc:
            logger.warning("image.upload_failed code=%s error=%s", self.code, exc)
            self._settle(previous)
            self.notify(from_error(exc, "Upload failed"))
            return False
        self._settle(room.image_url)
        if self.on_change is not None:
            self.on_change(room.image_url)
        self.notify(success("Image pasted", "Image has been shared to the room"))
        return True

    async def clear(self) -> bool:
        if self.image_url is None or self.state != ImageState.present:
            return False
        previous = self.image_url
        self.state = ImageState.clearing
        try:
            await bounded(
                remove_image(self.store, self.blobs, self.code, previous, self.clock()),
                self.timeout,
                "image clear",
            )
        except ClipRoomError as exc:
            logger.warning("image.clear_failed code=%s error=%s", self.code, exc)
            self._settle(previous)
            self.notify(from_error(exc, "Clear failed"))
            return False
        self._settle(None)
        if self.on_change is not None:
            self.on_change(None)
        self.notify(success("Image cleared", "Image has been removed from the room"))
        return True

    async def refresh(self) -> str | None:
        try:
            room = await bounded(self.store.get(self.code), self.timeout, "refresh")
        except ClipRoomError as exc:
            self.notify(from_error(exc, "Refresh failed"))
            return self.image_url
        self.sync(room)
        self.notify(success("Image refreshed", "Latest image has been loaded"))
        return self.image_url

    async def copy_image(self, clipboard: clip.Clipboard) -> str | None:
        if not self.image_url:
            return None
        try:
            copied = await clip.copy_image(clipboard, self.image_url, fetch=self.fetch)
        except ClipRoomError as exc:
            self.notify(from_error(exc, "Copy failed"))
            return None
        if copied == "image":
            self.notify(success("Image copied", "Image has been copied to your clipboard"))
        else:
            n = success("Image URL copied", "Image URL copied to clipboard. You can also download the image.")
            n.action = NotificationAction("Download", self.image_url)
            self.notify(n)
        return copied

    async def download(self, dest_dir: str | Path) -> Path | None:
        if not self.image_url:
            return None
        stamp = int(self.clock().timestamp() * 1000)
        try:
            path = await bounded(clip.download_image(self.image_url, dest_dir, stamp, fetch=self.fetch),
                                 self.timeout, "download")
        except ClipRoomError as exc:
            self.notify(from_error(exc, "Download failed"))
            return None
        except OSError as exc:
            logger.warning("image.download_write_failed code=%s error=%s", self.code, exc)
            self.notify(Notification("error", "Download failed", str(exc)))
            return None
        return path
