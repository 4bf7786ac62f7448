import abc
import asyncio
import logging
import mimetypes
from pathlib import Path
from typing import Awaitable, Callable
import aiohttp
from ..core.errors import ClipboardUnsupportedError, NetworkError

logger = logging.getLogger(__name__)

Fetch = Callable[[str], Awaitable[tuple[bytes, str]]]


class Clipboard(abc.ABC):
    """System clipboard of the device running the client."""

    supports_images: bool = True

    @abc.abstractmethod
    async def write_text(self, text: str) -> None:
        ...

    @abc.abstractmethod
    async def write_image(self, data: bytes, content_type: str) -> None:
        ...


async def fetch_image(url: str, session: aiohttp.ClientSession | None = None) -> tuple[bytes, str]:
    own = session is None
    session = session or aiohttp.ClientSession()
    try:
        async with session.get(url) as resp:
            if resp.status >= 400:
                raise NetworkError(f"Failed to fetch image: HTTP {resp.status}")
            return await resp.read(), resp.content_type
    except aiohttp.ClientError as exc:
        raise NetworkError(f"Failed to fetch image: {exc}") from exc
    finally:
        if own:
            await session.close()


async def copy_text(clipboard: Clipboard, text: str) -> bool:
    try:
        await clipboard.write_text(text)
        return True
    except Exception:
        logger.exception("clipboard.copy_text_failed")
        return False


async def copy_image(clipboard: Clipboard, url: str, fetch: Fetch = fetch_image) -> str:
    """Copy the image itself, else its URL.

    Returns ``"image"`` or ``"url"`` depending on what ended up on the
    clipboard; raises ClipboardUnsupportedError carrying the URL as a
    download fallback when neither worked.
    """
    try:
        if not clipboard.supports_images:
            raise ClipboardUnsupportedError("Clipboard cannot hold images")
        data, content_type = await fetch(url)
        if not content_type.startswith("image/"):
            raise ClipboardUnsupportedError(f"Invalid image type {content_type!r}")
        await clipboard.write_image(data, content_type)
        return "image"
    except Exception as exc:
        logger.warning("clipboard.copy_image_failed url=%s error=%s", url, exc)
    try:
        await clipboard.write_text(url)
        return "url"
    except Exception as exc:
        logger.warning("clipboard.copy_url_failed url=%s error=%s", url, exc)
        raise ClipboardUnsupportedError("Unable to copy image. Try downloading instead.", download_url=url) from exc


def download_name(content_type: str, stamp: int) -> str:
    ext = mimetypes.guess_extension(content_type or "") or ".png"
    return f"cliproom-image-{stamp}{ext}"


async def download_image(url: str, dest_dir: str | Path, stamp: int, fetch: Fetch = fetch_image) -> Path:
    data, content_type = await fetch(url)
    path = Path(dest_dir) / download_name(content_type, stamp)
    await asyncio.to_thread(path.write_bytes, data)
    logger.info("clipboard.downloaded url=%s path=%s bytes=%s", url, path, len(data))
    return path
