from pydantic_settings import BaseSettings
from pydantic import Field

class Settings(BaseSettings):
    app_name: str = Field(default="ClipRoom")
    app_env: str = Field(default="development")
    app_debug: bool = Field(default=True)

    database_url: str = Field(default="postgresql+psycopg://app:app@db:5432/app")

    # Rooms
    room_code_length: int = Field(default=6)
    room_code_max_attempts: int = Field(default=5)
    room_retention_hours: int = Field(default=24)
    cleanup_interval_seconds: int = Field(default=6 * 60 * 60)

    # Client-side sync
    text_debounce_ms: int = Field(default=500)
    operation_timeout_seconds: float = Field(default=30.0)

    # S3 storage
    s3_endpoint: str | None = Field(default=None, alias="S3_ENDPOINT")
    s3_region: str | None = Field(default=None, alias="S3_REGION")
    s3_bucket: str = Field(default="room-images", alias="S3_BUCKET")
    s3_access_key: str | None = Field(default=None, alias="S3_ACCESS_KEY")
    s3_secret_key: str | None = Field(default=None, alias="S3_SECRET_KEY")
    s3_force_path_style: bool = Field(default=True, alias="S3_FORCE_PATH_STYLE")
    # Overrides the derived public URL host (CDN, custom domain)
    s3_public_base_url: str | None = Field(default=None, alias="S3_PUBLIC_BASE_URL")

    # Remote client
    api_base_url: str = Field(default="http://localhost:8000", alias="API_BASE_URL")
    ws_base_url: str = Field(default="ws://localhost:8000", alias="WS_BASE_URL")

    class Config:
        env_file = ".env"
        case_sensitive = False
        populate_by_name = True

settings = Settings()
