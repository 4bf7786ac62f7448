from datetime import datetime, timezone
from pydantic import BaseModel, Field, field_validator


class RoomOut(BaseModel):
    code: str
    text_content: str | None = None
    image_url: str | None = None
    last_updated: datetime
    created_at: datetime

    class Config:
        from_attributes = True

    @field_validator("last_updated", "created_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        # SQLite hands back naive timestamps
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class RoomCreate(BaseModel):
    # Omitted: the server generates the code.
    code: str | None = Field(default=None, min_length=1, max_length=16)


class RoomPatch(BaseModel):
    text_content: str | None = None
    image_url: str | None = None


class CountOut(BaseModel):
    count: int


class BlobOut(BaseModel):
    key: str
    url: str
