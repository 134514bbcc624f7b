"""Tests for object storage backends."""

import asyncio
import re

import pytest
from botocore.exceptions import ClientError

from app.core.config import Settings
from app.core.exceptions import StorageError
from app.services.storage_service import (
    LocalStorageService,
    S3StorageService,
    build_object_key,
    create_storage_service,
)


class RecordingS3Client:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def put_object(self, **kwargs):
        if self.error is not None:
            raise self.error
        self.calls.append(kwargs)


def test_object_key_is_user_scoped_and_unique():
    first = build_object_key(7, "receipt.jpg")
    second = build_object_key(7, "receipt.jpg")

    assert re.fullmatch(r"ocr/7/[0-9a-f]{32}-receipt\.jpg", first)
    assert first != second


def test_object_key_drops_directories_from_file_name():
    key = build_object_key(7, "../../etc/passwd")
    assert key.startswith("ocr/7/")
    assert key.endswith("-passwd")
    assert ".." not in key


class TestLocalStorage:

    def test_put_writes_file_and_returns_url(self, tmp_path):
        storage = LocalStorageService(str(tmp_path), "http://localhost:8000/files/")
        stored = asyncio.run(storage.put("ocr/1/abc-my scan.png", b"data", "image/png"))

        assert (tmp_path / "ocr/1/abc-my scan.png").read_bytes() == b"data"
        assert stored.url == "http://localhost:8000/files/ocr/1/abc-my%20scan.png"

    def test_rejects_keys_outside_base_dir(self, tmp_path):
        storage = LocalStorageService(str(tmp_path / "files"), "http://localhost/files")
        with pytest.raises(StorageError):
            asyncio.run(storage.put("../escape.png", b"data", "image/png"))


class TestS3Storage:

    def test_put_uploads_with_content_type(self):
        client = RecordingS3Client()
        storage = S3StorageService("bucket", "ap-northeast-2", client=client)

        stored = asyncio.run(storage.put("ocr/1/abc-scan.png", b"data", "image/png"))

        assert client.calls == [{
            "Bucket": "bucket",
            "Key": "ocr/1/abc-scan.png",
            "Body": b"data",
            "ContentType": "image/png",
        }]
        assert stored.url == "https://bucket.s3.ap-northeast-2.amazonaws.com/ocr/1/abc-scan.png"

    def test_client_error_raises_storage_error(self):
        error = ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")
        storage = S3StorageService("bucket", "ap-northeast-2", client=RecordingS3Client(error))

        with pytest.raises(StorageError, match="Failed to upload image"):
            asyncio.run(storage.put("ocr/1/abc-scan.png", b"data", "image/png"))


class TestFactory:

    def test_local_backend(self, tmp_path):
        config = Settings(STORAGE_BACKEND="local", STORAGE_LOCAL_DIR=str(tmp_path))
        assert isinstance(create_storage_service(config), LocalStorageService)

    def test_s3_requires_bucket(self):
        with pytest.raises(ValueError, match="AWS_BUCKET"):
            create_storage_service(Settings(STORAGE_BACKEND="s3", AWS_BUCKET=None))

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unsupported storage backend"):
            create_storage_service(Settings(STORAGE_BACKEND="ftp"))
