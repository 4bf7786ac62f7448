from .room import Room, utcnow
