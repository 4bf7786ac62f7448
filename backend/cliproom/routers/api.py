from fastapi import APIRouter
from . import rooms, blobs, ws

api_router = APIRouter()

api_router.include_router(rooms.router, prefix="/rooms", tags=["rooms"])
api_router.include_router(blobs.router, prefix="/blobs", tags=["blobs"])
api_router.include_router(ws.router, prefix="/ws", tags=["ws"])
