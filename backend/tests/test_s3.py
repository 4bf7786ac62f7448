import asyncio

import boto3
import pytest
from botocore.stub import Stubber

from cliproom.core.errors import BackendError
from cliproom.stores.blobs import S3BlobStore


@pytest.fixture
def client():
    return boto3.client(
        "s3", region_name="us-east-1",
        aws_access_key_id="test", aws_secret_access_key="test",
    )


def test_public_url_path_style(client):
    store = S3BlobStore(client, "room-images", endpoint="http://minio:9000/", force_path_style=True)
    assert store.public_url("ROOM22/1-a b.png") == "http://minio:9000/room-images/ROOM22/1-a%20b.png"


def test_public_url_virtual_hosted(client):
    store = S3BlobStore(client, "room-images", region="eu-west-1", force_path_style=False)
    assert store.public_url("ROOM22/1-a.png") == "https://room-images.s3.eu-west-1.amazonaws.com/ROOM22/1-a.png"


def test_public_url_custom_base(client):
    store = S3BlobStore(client, "room-images", public_base_url="https://cdn.example.com/")
    assert store.public_url("k.png") == "https://cdn.example.com/k.png"


def test_key_from_url_round_trip(client):
    store = S3BlobStore(client, "room-images", endpoint="http://minio:9000")
    url = store.public_url("ROOM22/1-a b.png")
    assert store.key_from_url(url) == "ROOM22/1-a b.png"
    assert store.key_from_url("https://elsewhere/x.png") is None


def test_put_and_delete(client):
    store = S3BlobStore(client, "room-images", endpoint="http://minio:9000")
    with Stubber(client) as stub:
        stub.add_response("put_object", {}, {
            "Bucket": "room-images", "Key": "ROOM22/1-a.png", "Body": b"PNG",
            "ContentType": "image/png", "CacheControl": "max-age=3600",
        })
        stub.add_response("delete_object", {}, {"Bucket": "room-images", "Key": "ROOM22/1-a.png"})

        url = asyncio.run(store.put("ROOM22/1-a.png", b"PNG", "image/png"))
        asyncio.run(store.delete("ROOM22/1-a.png"))
        stub.assert_no_pending_responses()

    assert url == "http://minio:9000/room-images/ROOM22/1-a.png"


def test_client_errors_become_backend_errors(client):
    store = S3BlobStore(client, "room-images")
    with Stubber(client) as stub:
        stub.add_client_error("delete_object", service_error_code="AccessDenied", http_status_code=403)
        with pytest.raises(BackendError):
            asyncio.run(store.delete("ROOM22/1-a.png"))
