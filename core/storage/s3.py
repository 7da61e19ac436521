"""
Document storage on S3 or an S3-compatible server such as MinIO.

Student uploads are kept under generated keys; the database only stores the
key and clients download through short-lived presigned URLs.
"""

import logging
from functools import lru_cache
from typing import BinaryIO, Optional

import aioboto3

from core.config import settings

logger = logging.getLogger(__name__)


def _session_kwargs() -> dict:
    assert settings.aws_access_key_id, "AWS_ACCESS_KEY_ID not set in environment"
    assert settings.aws_secret_access_key, "AWS_SECRET_ACCESS_KEY not set in environment"
    assert settings.aws_region, "AWS_REGION not set in environment"
    return {
        "aws_access_key_id": settings.aws_access_key_id,
        "aws_secret_access_key": settings.aws_secret_access_key,
        "region_name": settings.aws_region,
    }


class S3Storage:
    """
    Thin async wrapper over one bucket.

    Every call opens its own client, so an instance can be shared between
    requests and Celery tasks.
    """

    def __init__(self, bucket_name: Optional[str] = None, endpoint_url: Optional[str] = None):
        self.bucket_name = bucket_name or settings.aws_s3_bucket
        if not self.bucket_name:
            raise ValueError("S3 bucket name not provided and AWS_S3_BUCKET not set")
        self.endpoint_url = endpoint_url or settings.aws_s3_endpoint_url
        self._session_kwargs = _session_kwargs()

    def _client(self):
        client_kwargs = {"endpoint_url": self.endpoint_url} if self.endpoint_url else {}
        return aioboto3.Session(**self._session_kwargs).client("s3", **client_kwargs)

    async def upload(
        self,
        file_data: bytes | BinaryIO,
        key: str,
        content_type: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> str:
        """Store ``file_data`` under ``key`` and return the key."""
        body = file_data if isinstance(file_data, bytes) else file_data.read()
        extra = {}
        if content_type:
            extra["ContentType"] = content_type
        if metadata:
            extra["Metadata"] = metadata

        async with self._client() as client:
            await client.put_object(Bucket=self.bucket_name, Key=key, Body=body, **extra)

        logger.info(f"Stored object {key} ({len(body)} bytes) in {self.bucket_name}")
        return key

    async def delete(self, key: str) -> bool:
        # S3 answers 204 for keys that do not exist
        async with self._client() as client:
            await client.delete_object(Bucket=self.bucket_name, Key=key)
        logger.info(f"Deleted object {key} from {self.bucket_name}")
        return True

    async def get_presigned_url(
        self, key: str, expiration: Optional[int] = None, operation: str = "get_object"
    ) -> str:
        """
        Args:
            key: Object key
            expiration: Lifetime in seconds, PRESIGNED_URL_EXPIRE_SECONDS by default
            operation: ``get_object`` for downloads, ``put_object`` for direct uploads
        """
        async with self._client() as client:
            return await client.generate_presigned_url(
                operation,
                Params={"Bucket": self.bucket_name, "Key": key},
                ExpiresIn=expiration or settings.presigned_url_expire_seconds,
            )


@lru_cache(maxsize=1)
def get_storage() -> S3Storage:
    return S3Storage()
