"""S3 object store backed by boto3.

boto3 is synchronous, so every call is pushed onto a thread pool and awaited
from the event loop.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, Optional
from urllib.parse import quote

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ...exceptions import ObjectNotFoundError, StorageError
from ...models.config import StorageConfig
from ...models.media_file import ObjectHead
from .base import ListPage, ObjectStore

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def is_not_found(error: ClientError) -> bool:
    code = str(error.response.get("Error", {}).get("Code", ""))
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return code in _NOT_FOUND_CODES or status == 404


class S3ObjectStore(ObjectStore):
    """ObjectStore over a single S3 bucket."""

    def __init__(self, bucket: str, region: str, client: Any = None, max_workers: int = 8,
                 public_url_base: Optional[str] = None):
        self._bucket = bucket
        self.region = region
        self.public_url_base = public_url_base
        self.client = client if client is not None else boto3.client("s3", region_name=region)
        self.executor = ThreadPoolExecutor(max_workers=max_workers)

    @classmethod
    def from_config(cls, storage: StorageConfig, max_workers: int = 8) -> "S3ObjectStore":
        client = boto3.client(
            "s3",
            region_name=storage.region,
            aws_access_key_id=storage.access_key_id,
            aws_secret_access_key=storage.secret_access_key,
            endpoint_url=storage.endpoint_url,
            config=BotoConfig(
                connect_timeout=10,
                read_timeout=60,
                retries={"max_attempts": 3, "mode": "standard"},
            ),
        )
        return cls(storage.bucket, storage.region, client=client, max_workers=max_workers,
                   public_url_base=storage.public_url_base)

    @property
    def bucket(self) -> str:
        return self._bucket

    async def _call(self, operation: str, fn: Callable[..., Any], **kwargs) -> Any:
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(self.executor, partial(fn, **kwargs))
        except ClientError:
            raise
        except BotoCoreError as e:
            raise StorageError(f"S3 {operation} failed: {e}") from e

    async def head_object(self, key: str) -> Optional[ObjectHead]:
        try:
            response = await self._call("head_object", self.client.head_object, Bucket=self._bucket, Key=key)
        except ClientError as e:
            if is_not_found(e):
                return None
            raise StorageError(f"S3 head_object failed for {key}: {e}") from e

        return ObjectHead(
            key=key,
            size=int(response.get("ContentLength", 0)),
            etag=(response.get("ETag") or "").strip('"') or None,
            content_type=response.get("ContentType"),
        )

    async def copy_object(self, source_key: str, destination_key: str, content_type: str) -> None:
        logger.debug(f"Copying s3://{self._bucket}/{source_key} -> {destination_key}")
        try:
            await self._call(
                "copy_object",
                self.client.copy_object,
                Bucket=self._bucket,
                Key=destination_key,
                CopySource={"Bucket": self._bucket, "Key": source_key},
                ContentType=content_type,
                MetadataDirective="REPLACE",
            )
        except ClientError as e:
            if is_not_found(e):
                raise ObjectNotFoundError(source_key) from e
            raise StorageError(f"S3 copy_object failed for {source_key}: {e}") from e

    async def delete_object(self, key: str) -> None:
        logger.debug(f"Deleting s3://{self._bucket}/{key}")
        try:
            await self._call("delete_object", self.client.delete_object, Bucket=self._bucket, Key=key)
        except ClientError as e:
            if is_not_found(e):
                return
            raise StorageError(f"S3 delete_object failed for {key}: {e}") from e

    async def list_objects(self, prefix: Optional[str] = None,
                           continuation_token: Optional[str] = None,
                           max_keys: int = 1000) -> ListPage:
        params = {"Bucket": self._bucket, "MaxKeys": max_keys}
        if prefix:
            params["Prefix"] = prefix
        if continuation_token:
            params["ContinuationToken"] = continuation_token

        try:
            response = await self._call("list_objects_v2", self.client.list_objects_v2, **params)
        except ClientError as e:
            raise StorageError(f"S3 list_objects_v2 failed: {e}") from e

        keys = [item["Key"] for item in response.get("Contents", [])]
        next_token = response.get("NextContinuationToken") if response.get("IsTruncated") else None
        return ListPage(keys=keys, next_token=next_token)

    async def put_object(self, key: str, body: bytes, content_type: str) -> ObjectHead:
        try:
            response = await self._call(
                "put_object",
                self.client.put_object,
                Bucket=self._bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
            )
        except ClientError as e:
            raise StorageError(f"Upload failed: {e}") from e

        return ObjectHead(
            key=key,
            size=len(body),
            etag=(response.get("ETag") or "").strip('"') or None,
            content_type=content_type,
        )

    def public_url(self, key: str) -> str:
        if self.public_url_base:
            return f"{self.public_url_base.rstrip('/')}/{quote(key)}"
        return f"https://{self._bucket}.s3.{self.region}.amazonaws.com/{quote(key)}"

    async def presigned_url(self, key: str, expires_in: int = 3600) -> str:
        if not key:
            raise StorageError("Missing S3 object key for signing")
        return await self._call(
            "generate_presigned_url",
            self.client.generate_presigned_url,
            ClientMethod="get_object",
            Params={"Bucket": self._bucket, "Key": key},
            ExpiresIn=expires_in,
        )

    def close(self) -> None:
        self.executor.shutdown(wait=True)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()
