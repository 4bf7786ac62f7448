"""Error taxonomy shared by the stores, the services and the HTTP surface.

Concurrent writers never see a conflict error: rooms are last-write-wins, so
there is deliberately no ``UpdateConflict`` here.
"""


class ClipRoomError(Exception):
    title = "Something went wrong"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.title)
        self.message = message or self.title


class RoomNotFoundError(ClipRoomError):
    title = "Room not found"

    def __init__(self, code: str):
        super().__init__(f"Room {code!r} doesn't exist or has expired")
        self.code = code


class InvalidRoomCodeError(ClipRoomError):
    title = "Invalid room code"


class DuplicateKeyError(ClipRoomError):
    title = "Room code already taken"

    def __init__(self, code: str):
        super().__init__(f"Room code {code!r} already exists")
        self.code = code


class RoomCreationError(ClipRoomError):
    title = "Failed to create room"


class BackendError(ClipRoomError):
    title = "Backend error"


class NetworkError(BackendError):
    title = "Network error"


class OperationTimeoutError(NetworkError):
    title = "Request timed out"


class UploadError(ClipRoomError):
    title = "Upload failed"


class UploadInProgressError(UploadError):
    title = "Upload already in progress"


class StorageDeleteError(ClipRoomError):
    # Never surfaced to users; logged while clearing an image.
    title = "Failed to delete from storage"


class ClipboardUnsupportedError(ClipRoomError):
    title = "Copy failed"

    def __init__(self, message: str | None = None, download_url: str | None = None):
        super().__init__(message)
        self.download_url = download_url
