import abc
import asyncio
import logging
from urllib.parse import quote, unquote
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, EndpointConnectionError
from ..core.config import settings
from ..core.errors import BackendError, NetworkError

logger = logging.getLogger(__name__)


class BlobStore(abc.ABC):
    @abc.abstractmethod
    async def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Stores the object and returns its public URL."""

    @abc.abstractmethod
    def public_url(self, key: str) -> str:
        ...

    @abc.abstractmethod
    async def delete(self, key: str) -> None:
        ...

    def key_from_url(self, url: str) -> str | None:
        prefix = self.public_url("")
        if url.startswith(prefix):
            return unquote(url[len(prefix):]) or None
        return None


def get_s3_client():
    session = boto3.session.Session(
        aws_access_key_id=settings.s3_access_key,
        aws_secret_access_key=settings.s3_secret_key,
        region_name=settings.s3_region,
    )
    cfg = Config(s3={'addressing_style': 'path' if settings.s3_force_path_style else 'virtual'})
    return session.client('s3', endpoint_url=settings.s3_endpoint, config=cfg)


class S3BlobStore(BlobStore):
    def __init__(self, client, bucket: str, endpoint: str | None = None, region: str | None = None,
                 force_path_style: bool = True, public_base_url: str | None = None):
        self.client = client
        self.bucket = bucket
        self.endpoint = endpoint
        self.region = region
        self.force_path_style = force_path_style
        self.public_base_url = public_base_url

    @classmethod
    def from_settings(cls) -> "S3BlobStore":
        return cls(
            get_s3_client(),
            settings.s3_bucket,
            endpoint=settings.s3_endpoint,
            region=settings.s3_region,
            force_path_style=settings.s3_force_path_style,
            public_base_url=settings.s3_public_base_url,
        )

    def _base(self) -> str:
        if self.public_base_url:
            return self.public_base_url.rstrip("/")
        if self.endpoint and self.force_path_style:
            return f"{self.endpoint.rstrip('/')}/{self.bucket}"
        # default virtual-hosted-style url
        if self.region:
            return f"https://{self.bucket}.s3.{self.region}.amazonaws.com"
        return f"https://{self.bucket}.s3.amazonaws.com"

    def public_url(self, key: str) -> str:
        return f"{self._base()}/{quote(key)}"

    async def _call(self, op: str, key: str, **kwargs):
        fn = getattr(self.client, op)
        try:
            return await asyncio.to_thread(fn, Bucket=self.bucket, Key=key, **kwargs)
        except EndpointConnectionError as exc:
            raise NetworkError(f"Storage is unreachable: {exc}") from exc
        except (BotoCoreError, ClientError) as exc:
            raise BackendError(f"Storage {op} failed for {key}: {exc}") from exc

    async def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        await self._call("put_object", key, Body=data, ContentType=content_type, CacheControl="max-age=3600")
        url = self.public_url(key)
        logger.info("blob.stored bucket=%s key=%s bytes=%s", self.bucket, key, len(data))
        return url

    async def delete(self, key: str) -> None:
        await self._call("delete_object", key)
        logger.info("blob.deleted bucket=%s key=%s", self.bucket, key)
