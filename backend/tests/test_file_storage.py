"""
Upload validation and the local object store.
"""
import pytest
from unittest.mock import MagicMock
from botocore.exceptions import ClientError

from services.file_storage import (
    FileValidationError, FileValidator, LocalObjectStore, S3ObjectStore, StorageError, build_object_key
)

class TestFileValidator:

    def test_accepts_png_and_jpeg(self, utils):
        validator = FileValidator(max_size=1024 * 1024)

        png = validator.validate(utils.image_bytes("PNG", size=(20, 10)), "a.png")
        jpeg = validator.validate(utils.image_bytes("JPEG"), "b.jpg")

        assert png["mime_type"] == "image/png"
        assert (png["width"], png["height"]) == (20, 10)
        assert jpeg["extension"] == ".jpg"

    def test_type_comes_from_content_not_name(self, utils):
        info = FileValidator(max_size=1024 * 1024).validate(utils.image_bytes("PNG"), "lies.jpg")
        assert info["mime_type"] == "image/png"

    def test_rejects_non_images(self):
        with pytest.raises(FileValidationError):
            FileValidator(max_size=1024).validate(b"<?php echo 'hi'; ?>", "shell.jpg")

    def test_rejects_empty_and_oversized(self, utils):
        validator = FileValidator(max_size=100)
        with pytest.raises(FileValidationError):
            validator.validate(b"", "empty.png")
        with pytest.raises(FileValidationError):
            validator.validate(utils.image_bytes("PNG", size=(200, 200)) + b"\x00" * 100, "big.png")

    def test_rejects_unsupported_format(self, utils):
        with pytest.raises(FileValidationError):
            FileValidator(max_size=1024 * 1024).validate(utils.image_bytes("BMP"), "a.bmp")

class TestLocalObjectStore:

    async def test_put_and_delete(self, tmp_path):
        store = LocalObjectStore(base_path=str(tmp_path), base_url="/media")
        key = build_object_key(7, ".png")

        stored = await store.put(key, b"data", "image/png")

        assert stored.path == key
        assert stored.url == f"/media/{key}"
        assert (tmp_path / key).read_bytes() == b"data"

        await store.delete(key)
        assert not (tmp_path / key).exists()
        # deleting twice is fine
        await store.delete(key)

    async def test_path_traversal_rejected(self, tmp_path):
        store = LocalObjectStore(base_path=str(tmp_path / "root"), base_url="/media")
        with pytest.raises(StorageError):
            await store.put("../escape.png", b"data", "image/png")

    def test_keys_are_unique_per_owner(self):
        first, second = build_object_key(3, ".jpg"), build_object_key(3, ".jpg")
        assert first != second
        assert first.startswith("photos/3/") and first.endswith(".jpg")

class TestS3ObjectStore:

    async def test_put_uses_encryption(self):
        client = MagicMock()
        store = S3ObjectStore(bucket="bucket", region="us-east-1", client=client)

        stored = await store.put("photos/1/x.jpg", b"data", "image/jpeg")

        client.put_object.assert_called_once()
        kwargs = client.put_object.call_args.kwargs
        assert kwargs["ServerSideEncryption"] == "AES256"
        assert kwargs["ContentType"] == "image/jpeg"
        assert stored.url.endswith("/photos/1/x.jpg")

    async def test_client_error_becomes_storage_error(self):
        client = MagicMock()
        client.delete_object.side_effect = ClientError(
            {"Error": {"Code": "500", "Message": "boom"}}, "DeleteObject"
        )
        store = S3ObjectStore(bucket="bucket", region="us-east-1", client=client)

        with pytest.raises(StorageError):
            await store.delete("photos/1/x.jpg")
