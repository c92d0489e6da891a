"""Object store client abstraction and the S3 implementation."""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Optional, Protocol, Union

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import ObjectNotFoundError, StorageAccessError, StorageError
from .utils import DEFAULT_LIST_PAGE_SIZE

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
_ACCESS_CODES = {"403", "AccessDenied", "NoSuchBucket", "InvalidAccessKeyId"}


@dataclass
class ObjectInfo:
    """Metadata of a stored object."""

    key: str
    size: int = 0
    etag: Optional[str] = None
    content_type: Optional[str] = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class ListObjectsPage:
    """One page of a prefix listing."""

    objects: list[ObjectInfo]
    next_token: Optional[str] = None


@dataclass
class ObjectBody:
    """Streaming body of a downloaded object together with its metadata."""

    info: ObjectInfo
    stream: BinaryIO

    def close(self) -> None:
        close = getattr(self.stream, "close", None)
        if close is not None:
            close()


class ObjectStoreProtocol(Protocol):
    """Operations the sync engine needs from an object store client."""

    def list_objects(
        self, bucket: str, prefix: str, continuation_token: Optional[str] = None
    ) -> ListObjectsPage: ...

    def head_object(self, bucket: str, key: str) -> ObjectInfo: ...

    def get_object(self, bucket: str, key: str) -> ObjectBody: ...

    def put_object(
        self,
        bucket: str,
        key: str,
        body: Union[bytes, BinaryIO],
        content_type: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> ObjectInfo: ...

    def delete_object(self, bucket: str, key: str) -> None: ...


def default_region() -> Optional[str]:
    """Region from the environment, as the AWS SDKs resolve it."""
    return os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION")


def create_s3_client(
    region: Optional[str] = None,
    endpoint_url: Optional[str] = None,
    max_attempts: int = 3,
    connect_timeout: float = 10.0,
    read_timeout: float = 60.0,
    max_pool_connections: int = 50,
) -> Any:
    """Create a boto3 S3 client with bounded timeouts and retries.

    Args:
        region: AWS region (defaults to AWS_REGION / AWS_DEFAULT_REGION)
        endpoint_url: Custom endpoint (MinIO, LocalStack, ...)
        max_attempts: Total attempts per request including retries
        connect_timeout: Connect timeout in seconds
        read_timeout: Read timeout in seconds
        max_pool_connections: HTTP pool size, should cover the largest
            transfer concurrency

    Returns:
        boto3 S3 client
    """
    boto_config = BotoConfig(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={"max_attempts": max_attempts, "mode": "standard"},
        max_pool_connections=max_pool_connections,
    )
    return boto3.client(
        "s3",
        region_name=region or default_region(),
        endpoint_url=endpoint_url,
        config=boto_config,
    )


def _translate_error(e: Exception, action: str, key: str) -> StorageError:
    """Map botocore exceptions to storage exceptions."""
    if isinstance(e, ClientError):
        code = str(e.response.get("Error", {}).get("Code", ""))
        if code in _NOT_FOUND_CODES:
            return ObjectNotFoundError(f"Object not found: {key}")
        if code in _ACCESS_CODES:
            return StorageAccessError(f"Failed to {action} {key}: {code}")
        return StorageError(f"Failed to {action} {key}: {e}")
    return StorageError(f"Failed to {action} {key}: {e}")


class S3ObjectStore:
    """Object store backed by an S3-compatible service.

    The client is injected; credentials and region resolution belong to
    whoever builds it. When no client is given one is created with
    :func:`create_s3_client`.
    """

    def __init__(
        self,
        client: Any = None,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        page_size: int = DEFAULT_LIST_PAGE_SIZE,
    ):
        self.s3 = client or create_s3_client(region=region, endpoint_url=endpoint_url)
        self.page_size = page_size

    def list_objects(
        self, bucket: str, prefix: str, continuation_token: Optional[str] = None
    ) -> ListObjectsPage:
        kwargs: dict[str, Any] = {
            "Bucket": bucket,
            "Prefix": prefix,
            "MaxKeys": self.page_size,
        }
        if continuation_token:
            kwargs["ContinuationToken"] = continuation_token
        try:
            response = self.s3.list_objects_v2(**kwargs)
        except (ClientError, BotoCoreError) as e:
            if isinstance(e, ClientError):
                code = str(e.response.get("Error", {}).get("Code", ""))
                if code in _ACCESS_CODES or code in _NOT_FOUND_CODES:
                    raise StorageAccessError(
                        f"Cannot list s3://{bucket}/{prefix}: {code}"
                    ) from e
            raise StorageError(f"Cannot list s3://{bucket}/{prefix}: {e}") from e

        objects = [
            ObjectInfo(
                key=item["Key"],
                size=int(item.get("Size", 0)),
                etag=item.get("ETag"),
            )
            for item in response.get("Contents", [])
        ]
        next_token = None
        if response.get("IsTruncated"):
            next_token = response.get("NextContinuationToken")
        return ListObjectsPage(objects=objects, next_token=next_token)

    def head_object(self, bucket: str, key: str) -> ObjectInfo:
        try:
            response = self.s3.head_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise _translate_error(e, "stat", key) from e
        return ObjectInfo(
            key=key,
            size=int(response.get("ContentLength", 0)),
            etag=response.get("ETag"),
            content_type=response.get("ContentType"),
            metadata=dict(response.get("Metadata", {})),
        )

    def get_object(self, bucket: str, key: str) -> ObjectBody:
        try:
            response = self.s3.get_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise _translate_error(e, "download", key) from e
        info = ObjectInfo(
            key=key,
            size=int(response.get("ContentLength", 0)),
            etag=response.get("ETag"),
            content_type=response.get("ContentType"),
            metadata=dict(response.get("Metadata", {})),
        )
        return ObjectBody(info=info, stream=response["Body"])

    def put_object(
        self,
        bucket: str,
        key: str,
        body: Union[bytes, BinaryIO],
        content_type: str,
        metadata: Optional[dict[str, str]] = None,
    ) -> ObjectInfo:
        try:
            response = self.s3.put_object(
                Bucket=bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
                Metadata=metadata or {},
            )
        except (ClientError, BotoCoreError) as e:
            raise _translate_error(e, "upload", key) from e
        logger.debug(f"Uploaded s3://{bucket}/{key} ({content_type})")
        return ObjectInfo(
            key=key,
            etag=response.get("ETag"),
            content_type=content_type,
            metadata=dict(metadata or {}),
        )

    def delete_object(self, bucket: str, key: str) -> None:
        try:
            self.s3.delete_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise _translate_error(e, "delete", key) from e
        logger.debug(f"Deleted s3://{bucket}/{key}")
