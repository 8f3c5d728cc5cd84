"""
services/storage.py: Where uploaded note files live.

LocalStorage keeps files under Config.UPLOAD_FOLDER/notes/; S3Storage keeps
them in Config.AWS_S3_BUCKET under the same ``{user_id}/{name}`` keys.
Both expose the same three blocking calls; async callers wrap them in
run_in_executor.
"""

import logging
import os
import random
import string
import time

from config import Config

logger = logging.getLogger(__name__)


class StorageError(Exception):
    pass


def make_storage_path(user_id: int, extension: str) -> str:
    """``{user_id}/{epoch_ms}-{random7}.{ext}``, unique per upload, never the client's name."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=7))
    ext = extension.lstrip(".").lower()
    return f"{user_id}/{int(time.time() * 1000)}-{suffix}.{ext}"


class LocalStorage:
    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    def _full_path(self, path: str) -> str:
        full = os.path.abspath(os.path.join(self.root, path))
        if not full.startswith(self.root + os.sep):
            raise StorageError(f"Invalid storage path: {path}")
        return full

    def save(self, path: str, data: bytes) -> None:
        full = self._full_path(path)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        with open(full, "wb") as f:
            f.write(data)

    def load(self, path: str) -> bytes:
        try:
            with open(self._full_path(path), "rb") as f:
                return f.read()
        except OSError as exc:
            raise StorageError(str(exc)) from exc

    def delete(self, path: str) -> None:
        try:
            os.remove(self._full_path(path))
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise StorageError(str(exc)) from exc


class S3Storage:
    def __init__(self, bucket: str, prefix: str = "notes/"):
        self.bucket = bucket
        self.prefix = prefix
        self._client = None

    def _get_client(self):
        if self._client is None:
            import boto3

            self._client = boto3.client(
                "s3",
                aws_access_key_id=Config.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=Config.AWS_SECRET_ACCESS_KEY,
                region_name=Config.AWS_S3_REGION,
            )
        return self._client

    def save(self, path: str, data: bytes) -> None:
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            self._get_client().put_object(Bucket=self.bucket, Key=self.prefix + path, Body=data)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc)) from exc

    def load(self, path: str) -> bytes:
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            obj = self._get_client().get_object(Bucket=self.bucket, Key=self.prefix + path)
            return obj["Body"].read()
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc)) from exc

    def delete(self, path: str) -> None:
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            self._get_client().delete_object(Bucket=self.bucket, Key=self.prefix + path)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc)) from exc


def create_storage():
    if Config.S3_ENABLED and Config.AWS_S3_BUCKET:
        logger.info("Storage: S3 bucket=%s", Config.AWS_S3_BUCKET)
        return S3Storage(Config.AWS_S3_BUCKET)
    root = os.path.join(Config.UPLOAD_FOLDER, "notes")
    logger.info("Storage: local root=%s", root)
    return LocalStorage(root)
