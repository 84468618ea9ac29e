"""
Image validation and object storage for uploaded photos.
Supports the local filesystem and AWS S3 as backends.
"""
import os
import io
import uuid
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Optional
import logging
from PIL import Image, UnidentifiedImageError
import boto3
from botocore.exceptions import BotoCoreError, ClientError

from services.config import app_config

logger = logging.getLogger(__name__)

# Pillow format name -> (mime type, stored extension)
ALLOWED_FORMATS = {
    'JPEG': ('image/jpeg', '.jpg'),
    'PNG': ('image/png', '.png'),
    'WEBP': ('image/webp', '.webp'),
    'GIF': ('image/gif', '.gif'),
}

MIN_FILE_SIZE = 1  # bytes
MAX_IMAGE_DIMENSION = 10000  # px
MIN_IMAGE_DIMENSION = 1  # px

class FileValidationError(Exception):
    """Custom exception for file validation errors."""
    pass

class StorageError(Exception):
    """Custom exception for storage operations."""
    pass

class FileValidator:
    """
    Checks that an upload is a decodable image of an allowed type and size.
    The type comes from the image data itself, never from the filename.
    """

    def __init__(self, max_size: Optional[int] = None):
        self.max_size = max_size or app_config.max_upload_bytes

    def validate(self, data: bytes, original_filename: str = "") -> Dict[str, Any]:
        """
        Returns:
            Dict with ``mime_type``, ``extension``, ``width``, ``height`` and ``file_size``

        Raises:
            FileValidationError: If the file fails validation
        """
        file_size = len(data)
        if file_size < MIN_FILE_SIZE:
            raise FileValidationError(f"{original_filename or 'File'} is empty")
        if file_size > self.max_size:
            raise FileValidationError(
                f"{original_filename or 'File'} is too large. Maximum size: {self.max_size} bytes"
            )

        try:
            with Image.open(io.BytesIO(data)) as img:
                img.verify()
            # verify() leaves the image unusable, reopen for the header fields
            with Image.open(io.BytesIO(data)) as img:
                image_format = img.format
                width, height = img.size
        except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
            raise FileValidationError(f"Invalid image file: {original_filename or 'upload'}") from e

        if image_format not in ALLOWED_FORMATS:
            raise FileValidationError(f"Unsupported file type: {image_format}")
        if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
            raise FileValidationError(f"Image too large. Max dimensions: {MAX_IMAGE_DIMENSION}px")
        if width < MIN_IMAGE_DIMENSION or height < MIN_IMAGE_DIMENSION:
            raise FileValidationError(f"Image too small. Min dimensions: {MIN_IMAGE_DIMENSION}px")

        mime_type, extension = ALLOWED_FORMATS[image_format]
        return {
            'mime_type': mime_type,
            'extension': extension,
            'width': width,
            'height': height,
            'file_size': file_size,
        }

def build_object_key(user_id: int, extension: str) -> str:
    """Unique, unguessable key under the owner's prefix."""
    return f"photos/{user_id}/{uuid.uuid4().hex}{extension}"

@dataclass
class StoredObject:
    path: str
    url: str

class ObjectStore(ABC):
    """Abstract base class for blob storage backends."""

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> StoredObject:
        pass

    @abstractmethod
    async def delete(self, path: str):
        pass

class LocalObjectStore(ObjectStore):
    """Local filesystem backend for development and single-node deployments."""

    def __init__(self, base_path: Optional[str] = None, base_url: Optional[str] = None):
        self.base_path = Path(base_path or app_config.storage_path)
        self.base_url = (base_url if base_url is not None else app_config.media_base_url).rstrip('/')

    def _resolve(self, path: str) -> Path:
        target = (self.base_path / path).resolve()
        if self.base_path.resolve() not in target.parents:
            raise StorageError(f"Path escapes storage root: {path}")
        return target

    async def put(self, key: str, data: bytes, content_type: str) -> StoredObject:
        try:
            file_path = self._resolve(key)
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(file_path, 'wb') as f:
                f.write(data)
        except OSError as e:
            logger.error(f"Local storage upload failed for {key}: {e}")
            raise StorageError(f"Could not store {key}") from e
        return StoredObject(path=key, url=f"{self.base_url}/{key}")

    async def delete(self, path: str):
        try:
            file_path = self._resolve(path)
            if file_path.exists():
                file_path.unlink()
        except OSError as e:
            logger.error(f"Local storage delete failed for {path}: {e}")
            raise StorageError(f"Could not delete {path}") from e

class S3ObjectStore(ObjectStore):
    """AWS S3 backend with server-side encryption. boto3 calls run in the default executor."""

    def __init__(self, bucket: Optional[str] = None, region: Optional[str] = None, client=None):
        self.bucket = bucket or app_config.s3_bucket
        self.region = region or app_config.aws_region
        self.s3_client = client or boto3.client(
            's3',
            aws_access_key_id=os.getenv('AWS_ACCESS_KEY_ID'),
            aws_secret_access_key=os.getenv('AWS_SECRET_ACCESS_KEY'),
            region_name=self.region
        )
        self.base_url = os.getenv(
            'S3_PUBLIC_URL', f"https://{self.bucket}.s3.{self.region}.amazonaws.com"
        ).rstrip('/')

    async def put(self, key: str, data: bytes, content_type: str) -> StoredObject:
        try:
            await asyncio.get_event_loop().run_in_executor(
                None,
                lambda: self.s3_client.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=data,
                    ContentType=content_type,
                    ServerSideEncryption='AES256'
                )
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"S3 upload failed for {key}: {e}")
            raise StorageError(f"Could not store {key}") from e
        return StoredObject(path=key, url=f"{self.base_url}/{key}")

    async def delete(self, path: str):
        try:
            await asyncio.get_event_loop().run_in_executor(
                None,
                lambda: self.s3_client.delete_object(Bucket=self.bucket, Key=path)
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"S3 delete failed for {path}: {e}")
            raise StorageError(f"Could not delete {path}") from e

_object_store: Optional[ObjectStore] = None

def get_object_store() -> ObjectStore:
    """Backend selected by STORAGE_BACKEND, created on first use."""
    global _object_store
    if _object_store is None:
        if app_config.storage_backend == 's3':
            _object_store = S3ObjectStore()
        else:
            _object_store = LocalObjectStore()
        logger.info(f"Object store initialized: {type(_object_store).__name__}")
    return _object_store
