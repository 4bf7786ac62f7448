from .rooms import RoomStore, SqlRoomStore, ROOM_FIELDS
from .notifier import ChangeNotifier, Subscription, RoomHub, PublishingRoomStore
from .blobs import BlobStore, S3BlobStore
