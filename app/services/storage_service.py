from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional
import logging
import uuid
from urllib.parse import quote

import aiofiles
import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError
from starlette.concurrency import run_in_threadpool

from app.core.config import Settings
from app.core.exceptions import StorageError

logger = logging.getLogger(__name__)


@dataclass
class StoredObject:
    key: str
    url: str


def build_object_key(user_id: int, file_name: str) -> str:
    """
    Storage key for an uploaded image, unique per upload

    Format: ocr/{user_id}/{random}-{file_name}
    """
    safe_name = PurePosixPath(file_name.replace("\\", "/")).name or "image"
    return f"ocr/{user_id}/{uuid.uuid4().hex}-{safe_name}"


class StorageService:
    """Stores original images and returns a retrievable URL"""

    async def put(self, key: str, data: bytes, mime_type: str) -> StoredObject:
        raise NotImplementedError


class LocalStorageService(StorageService):
    """Writes objects under a local directory served by the API at public_url"""

    def __init__(self, base_dir: str, public_url: str):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.public_url = public_url.rstrip("/")

    async def put(self, key: str, data: bytes, mime_type: str) -> StoredObject:
        path = (self.base_dir / key).resolve()
        if self.base_dir.resolve() not in path.parents:
            raise StorageError(f"Invalid storage key: {key}")

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, 'wb') as f:
                await f.write(data)
        except OSError as e:
            logger.error(f"Failed to write {key}: {e}")
            raise StorageError(f"Failed to store image: {e}") from e

        logger.debug(f"Stored {len(data)} bytes at {path}")
        return StoredObject(key=key, url=f"{self.public_url}/{quote(key)}")


class S3StorageService(StorageService):
    """Uploads objects to an S3 bucket"""

    def __init__(
        self,
        bucket: str,
        region: str,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        client=None
    ):
        self.bucket = bucket
        self.region = region
        if client is None:
            session = boto3.session.Session(
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                region_name=region,
            )
            client = session.client("s3")
        self.client = client

    def _put_object(self, key: str, data: bytes, mime_type: str):
        self.client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=mime_type or "application/octet-stream",
        )

    async def put(self, key: str, data: bytes, mime_type: str) -> StoredObject:
        try:
            await run_in_threadpool(self._put_object, key, data, mime_type)
        except NoCredentialsError as e:
            logger.error("S3 credentials not found.")
            raise StorageError("Storage credentials are not configured") from e
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Error uploading to S3: {e}")
            raise StorageError(f"Failed to upload image: {e}") from e

        return StoredObject(
            key=key,
            url=f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{quote(key)}"
        )


def create_storage_service(settings: Settings) -> StorageService:
    """Build the storage backend selected by STORAGE_BACKEND"""
    if settings.STORAGE_BACKEND == "s3":
        if not settings.AWS_BUCKET:
            raise ValueError("AWS_BUCKET must be set when STORAGE_BACKEND is 's3'")
        return S3StorageService(
            bucket=settings.AWS_BUCKET,
            region=settings.AWS_DEFAULT_REGION,
            access_key_id=settings.AWS_ACCESS_KEY_ID,
            secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        )

    if settings.STORAGE_BACKEND == "local":
        return LocalStorageService(settings.STORAGE_LOCAL_DIR, settings.STORAGE_PUBLIC_URL)

    raise ValueError(f"Unsupported storage backend: {settings.STORAGE_BACKEND}")
