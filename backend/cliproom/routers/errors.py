from fastapi import HTTPException
from ..core.errors import (
    ClipRoomError, RoomNotFoundError, InvalidRoomCodeError, DuplicateKeyError,
    RoomCreationError, UploadInProgressError, UploadError, NetworkError,
)

STATUS = [
    (RoomNotFoundError, 404),
    (InvalidRoomCodeError, 422),
    (DuplicateKeyError, 409),
    (RoomCreationError, 503),
    (UploadInProgressError, 409),
    (UploadError, 502),
    (NetworkError, 503),
]


def http_error(exc: ClipRoomError) -> HTTPException:
    for cls, status in STATUS:
        if isinstance(exc, cls):
            return HTTPException(status_code=status, detail=exc.message)
    return HTTPException(status_code=502, detail=exc.message)
