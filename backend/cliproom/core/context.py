from dataclasses import dataclass
from fastapi import Request, WebSocket
from ..services.lifecycle import RoomLifecycleManager
from ..stores.blobs import BlobStore
from ..stores.notifier import RoomHub
from ..stores.rooms import RoomStore


@dataclass
class AppContext:
    store: RoomStore  # publishes committed updates to hub
    hub: RoomHub
    blobs: BlobStore
    lifecycle: RoomLifecycleManager


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_ws_context(websocket: WebSocket) -> AppContext:
    return websocket.app.state.context
