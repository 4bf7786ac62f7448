"""aiohttp implementations of the store interfaces, talking to a ClipRoom server.

They let a device run the same session and image controller code as the
server process, with the HTTP API as the room table and the ``/ws/{code}``
websocket as the change channel.
"""
import asyncio
import json
import logging
from datetime import datetime
from urllib.parse import quote
import aiohttp
from pydantic import ValidationError
from ..core.config import settings
from ..core.errors import BackendError, DuplicateKeyError, NetworkError, RoomNotFoundError
from ..schemas.room import RoomOut
from ..services.guard import watch
from ..stores.blobs import BlobStore
from ..stores.notifier import ChangeNotifier, OnUpdate, Subscription
from ..stores.rooms import RoomStore, check_fields

logger = logging.getLogger(__name__)


async def _check(resp: aiohttp.ClientResponse, code: str | None = None):
    if resp.status < 400:
        return
    try:
        detail = (await resp.json()).get("detail")
    except (aiohttp.ContentTypeError, json.JSONDecodeError):
        detail = await resp.text()
    if resp.status == 404 and code is not None:
        raise RoomNotFoundError(code)
    if resp.status == 409 and code is not None:
        raise DuplicateKeyError(code)
    if resp.status in (502, 503, 504):
        raise NetworkError(f"HTTP {resp.status}: {detail}")
    raise BackendError(f"HTTP {resp.status}: {detail}")


class RemoteRoomStore(RoomStore):
    def __init__(self, session: aiohttp.ClientSession, base_url: str | None = None):
        self.session = session
        self.base_url = (base_url or settings.api_base_url).rstrip("/")

    async def _request(self, method: str, path: str, code: str | None = None, **kwargs):
        try:
            async with self.session.request(method, f"{self.base_url}{path}", **kwargs) as resp:
                await _check(resp, code)
                return await resp.json()
        except aiohttp.ClientError as exc:
            raise NetworkError(f"Backend is unreachable: {exc}") from exc

    async def insert(self, room: RoomOut) -> RoomOut:
        data = await self._request("POST", "/rooms/", room.code, json={"code": room.code})
        return RoomOut.model_validate(data)

    async def get(self, code: str) -> RoomOut:
        data = await self._request("GET", f"/rooms/{quote(code)}", code)
        return RoomOut.model_validate(data)

    async def update(self, code: str, fields: dict, timestamp: datetime) -> RoomOut:
        # the server stamps last_updated on commit
        check_fields(fields)
        data = await self._request("PATCH", f"/rooms/{quote(code)}", code, json=fields)
        return RoomOut.model_validate(data)

    async def delete_where(self, created_before: datetime) -> int:
        # retention is configured server-side
        data = await self._request("POST", "/rooms/sweep")
        return int(data["count"])

    async def count_where(self, created_before: datetime) -> int:
        data = await self._request("GET", "/rooms/expired/count")
        return int(data["count"])


class RemoteBlobStore(BlobStore):
    def __init__(self, session: aiohttp.ClientSession, base_url: str | None = None):
        self.session = session
        self.base_url = (base_url or settings.api_base_url).rstrip("/")

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/blobs/{quote(key)}"

    async def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        try:
            async with self.session.put(self.public_url(key), data=data, headers={"Content-Type": content_type}) as resp:
                await _check(resp)
                return (await resp.json())["url"]
        except aiohttp.ClientError as exc:
            raise NetworkError(f"Storage is unreachable: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            async with self.session.delete(self.public_url(key)) as resp:
                await _check(resp)
        except aiohttp.ClientError as exc:
            raise NetworkError(f"Storage is unreachable: {exc}") from exc


class WebSocketNotifier(ChangeNotifier):
    """One websocket per subscription; closing the subscription closes the socket."""

    def __init__(self, session: aiohttp.ClientSession, ws_base_url: str | None = None):
        self.session = session
        self.ws_base_url = (ws_base_url or settings.ws_base_url).rstrip("/")
        self.tasks: dict[str, asyncio.Task] = {}

    def subscribe(self, code: str, on_update: OnUpdate) -> Subscription:
        sub = Subscription(code, on_update, on_close=self._stop)
        self.tasks[sub.sub_id] = watch(asyncio.create_task(self._listen(sub)), f"channel {code}")
        return sub

    def _stop(self, sub: Subscription):
        task = self.tasks.pop(sub.sub_id, None)
        if task is not None:
            task.cancel()

    async def _listen(self, sub: Subscription):
        url = f"{self.ws_base_url}/ws/{quote(sub.code)}"
        try:
            async with self.session.ws_connect(url) as ws:
                logger.info("ws.connected code=%s", sub.code)
                async for msg in ws:
                    if msg.type == aiohttp.WSMsgType.TEXT:
                        await self._handle(sub, msg.data)
                    elif msg.type in (aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                        break
        except aiohttp.ClientError:
            logger.exception("ws.connection_failed code=%s", sub.code)
        finally:
            self.tasks.pop(sub.sub_id, None)
            if not sub.closed:
                # the session's manual refresh is the recovery path
                sub.stalled = True
                logger.warning("ws.stalled code=%s", sub.code)

    async def _handle(self, sub: Subscription, raw: str):
        try:
            data = json.loads(raw)
            if data.get("type") != "room_updated":
                return
            room = RoomOut.model_validate(data["room"])
        except (ValueError, KeyError, AttributeError, ValidationError):
            logger.exception("ws.bad_frame code=%s", sub.code)
            return
        try:
            await sub.deliver(room)
        except Exception:
            logger.exception("ws.listener_failed code=%s", sub.code)
