from dataclasses import dataclass
from typing import Callable
from ..core.errors import ClipRoomError, ClipboardUnsupportedError


@dataclass
class NotificationAction:
    label: str
    url: str


@dataclass
class Notification:
    level: str  # "success" | "error" | "info"
    title: str
    description: str = ""
    action: NotificationAction | None = None


Notify = Callable[[Notification], None]


def ignore(notification: Notification) -> None:
    pass


def success(title: str, description: str = "") -> Notification:
    return Notification("success", title, description)


def from_error(exc: Exception, title: str | None = None) -> Notification:
    if isinstance(exc, ClipRoomError):
        n = Notification("error", title or exc.title, exc.message)
    else:
        n = Notification("error", title or "Something went wrong", "Please try again")
    if isinstance(exc, ClipboardUnsupportedError) and exc.download_url:
        n.action = NotificationAction("Download", exc.download_url)
    return n
