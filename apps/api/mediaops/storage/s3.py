from __future__ import annotations

from collections.abc import Callable
from contextlib import closing
from dataclasses import dataclass
from typing import Any, TypeVar

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from mediaops.core.config import Settings
from mediaops.storage.base import (
    BlobStore,
    BlobStoreError,
    StoredBlob,
    build_attachment_disposition,
)

T = TypeVar("T")


@dataclass(frozen=True)
class S3Config:
    endpoint_url: str
    access_key_id: str
    secret_access_key: str
    bucket: str

    @classmethod
    def from_settings(cls, settings: Settings) -> S3Config:
        return cls(
            endpoint_url=settings.S3_ENDPOINT_URL,
            access_key_id=settings.S3_ACCESS_KEY_ID,
            secret_access_key=settings.S3_SECRET_ACCESS_KEY,
            bucket=settings.S3_BUCKET,
        )


class S3BlobStore(BlobStore):
    """S3-compatible store (MinIO locally). Artifacts are served by presigned URL."""

    def __init__(self, config: S3Config) -> None:
        self._bucket = config.bucket
        self._client = boto3.client(
            "s3",
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
        )

    def _call(self, op: Callable[..., T], **kwargs: Any) -> T:
        try:
            return op(Bucket=self._bucket, **kwargs)
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(f"{op.__name__} {kwargs.get('Key', '')}: {e}") from e

    def put_bytes(self, *, key: str, data: bytes, content_type: str | None) -> StoredBlob:
        extra = {"ContentType": content_type} if content_type else {}
        self._call(self._client.put_object, Key=key, Body=data, **extra)
        return StoredBlob(storage_key=key, size_bytes=len(data))

    def get_bytes(self, *, key: str) -> bytes:
        res = self._call(self._client.get_object, Key=key)
        try:
            with closing(res["Body"]) as body:
                return bytes(body.read())
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(f"read {key}: {e}") from e

    def delete(self, *, key: str) -> None:
        # DeleteObject succeeds for missing keys, so blob cleanup jobs are idempotent.
        self._call(self._client.delete_object, Key=key)

    def get_download_url(
        self,
        *,
        key: str,
        expires_in_seconds: int,
        filename: str | None,
        content_type: str | None,
    ) -> str | None:
        params: dict[str, str] = {"Bucket": self._bucket, "Key": key}
        if content_type:
            params["ResponseContentType"] = content_type
        if filename:
            params["ResponseContentDisposition"] = build_attachment_disposition(filename)
        try:
            return self._client.generate_presigned_url(
                ClientMethod="get_object", Params=params, ExpiresIn=expires_in_seconds
            )
        except (BotoCoreError, ClientError) as e:
            raise BlobStoreError(str(e)) from e
