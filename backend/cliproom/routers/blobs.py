from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse
from ..core.context import AppContext, get_context
from ..core.errors import ClipRoomError
from ..schemas.room import BlobOut
from .errors import http_error
from .rooms import MAX_IMAGE_BYTES

router = APIRouter()


@router.put("/{key:path}", response_model=BlobOut)
async def put_blob(key: str, request: Request, ctx: AppContext = Depends(get_context)):
    data = await request.body()
    if not data:
        raise HTTPException(status_code=422, detail="Empty body")
    if len(data) > MAX_IMAGE_BYTES:
        raise HTTPException(status_code=413, detail="Blob too large")
    content_type = request.headers.get("content-type", "application/octet-stream")
    try:
        url = await ctx.blobs.put(key, data, content_type)
    except ClipRoomError as exc:
        raise http_error(exc)
    return BlobOut(key=key, url=url)


@router.get("/{key:path}")
async def resolve_blob(key: str, ctx: AppContext = Depends(get_context)):
    return RedirectResponse(ctx.blobs.public_url(key), status_code=307)


@router.delete("/{key:path}", status_code=204)
async def delete_blob(key: str, ctx: AppContext = Depends(get_context)):
    try:
        await ctx.blobs.delete(key)
    except ClipRoomError as exc:
        raise http_error(exc)
