from fastapi import APIRouter, Depends, HTTPException, UploadFile, File
from ..core.context import AppContext, get_context
from ..core.errors import ClipRoomError
from ..models import utcnow
from ..schemas.room import RoomOut, RoomCreate, RoomPatch, CountOut
from ..services.images import publish_image, remove_image
from ..services.lifecycle import normalize_code
from .errors import http_error

router = APIRouter()

MAX_IMAGE_BYTES = 10 * 1024 * 1024


def canonical(code: str) -> str:
    try:
        return normalize_code(code)
    except ClipRoomError as exc:
        raise http_error(exc)


@router.post("/", response_model=RoomOut, status_code=201)
async def create_room(payload: RoomCreate | None = None, ctx: AppContext = Depends(get_context)):
    try:
        if payload is not None and payload.code:
            now = utcnow()
            return await ctx.store.insert(RoomOut(code=canonical(payload.code), last_updated=now, created_at=now))
        return await ctx.lifecycle.create_room()
    except ClipRoomError as exc:
        raise http_error(exc)


@router.get("/expired/count", response_model=CountOut)
async def expired_count(ctx: AppContext = Depends(get_context)):
    try:
        return CountOut(count=await ctx.lifecycle.count_expired())
    except ClipRoomError as exc:
        raise http_error(exc)


@router.post("/sweep", response_model=CountOut)
async def sweep(ctx: AppContext = Depends(get_context)):
    try:
        return CountOut(count=await ctx.lifecycle.sweep_expired())
    except ClipRoomError as exc:
        raise http_error(exc)


@router.get("/{code}", response_model=RoomOut)
async def get_room(code: str, ctx: AppContext = Depends(get_context)):
    try:
        return await ctx.lifecycle.resolve_room(code)
    except ClipRoomError as exc:
        raise http_error(exc)


@router.patch("/{code}", response_model=RoomOut)
async def patch_room(code: str, payload: RoomPatch, ctx: AppContext = Depends(get_context)):
    fields = payload.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=422, detail="Nothing to update")
    if "text_content" in fields and not fields["text_content"]:
        fields["text_content"] = None
    try:
        return await ctx.store.update(canonical(code), fields, utcnow())
    except ClipRoomError as exc:
        raise http_error(exc)


@router.post("/{code}/image", response_model=RoomOut)
async def upload_image(code: str, file: UploadFile = File(...), ctx: AppContext = Depends(get_context)):
    code = canonical(code)
    data = await file.read()
    if len(data) > MAX_IMAGE_BYTES:
        raise HTTPException(status_code=413, detail="Image too large")
    content_type = file.content_type or ""
    if not content_type.startswith("image/"):
        raise HTTPException(status_code=422, detail="Only image files can be shared")
    try:
        await ctx.store.get(code)
        return await publish_image(ctx.store, ctx.blobs, code, file.filename or "", data, content_type, utcnow())
    except ClipRoomError as exc:
        raise http_error(exc)


@router.delete("/{code}/image", response_model=RoomOut)
async def clear_image(code: str, ctx: AppContext = Depends(get_context)):
    code = canonical(code)
    try:
        room = await ctx.store.get(code)
        return await remove_image(ctx.store, ctx.blobs, code, room.image_url, utcnow())
    except ClipRoomError as exc:
        raise http_error(exc)
