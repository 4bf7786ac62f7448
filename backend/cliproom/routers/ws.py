import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from ..core.context import get_ws_context
from ..core.errors import ClipRoomError
from ..schemas.room import RoomOut

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/{code}")
async def room_channel(websocket: WebSocket, code: str):
    ctx = get_ws_context(websocket)
    try:
        room = await ctx.lifecycle.resolve_room(code)
    except ClipRoomError:
        await websocket.close(code=4404)
        return

    await websocket.accept()

    async def forward(updated: RoomOut):
        await websocket.send_json({"type": "room_updated", "room": updated.model_dump(mode="json")})

    sub = ctx.hub.subscribe(room.code, forward)
    try:
        await websocket.send_json({"type": "welcome", "sub_id": sub.sub_id, "room": room.model_dump(mode="json")})
        while True:
            # clients only listen; anything they send is ignored
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        sub.close()
        logger.info("ws.disconnected code=%s sub_id=%s", room.code, sub.sub_id)
