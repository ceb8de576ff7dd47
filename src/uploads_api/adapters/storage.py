"""
Object store gateway.
Every blob the pipeline touches (temp uploads and processed files) goes
through this wrapper around a boto3 S3 client; moto or MinIO stand in for
S3 locally.
"""

import logging
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from uploads_api.config.settings import Settings
from uploads_api.exceptions import StorageError

try:
    from mypy_boto3_s3 import S3Client
except ImportError:
    ...

logger = logging.getLogger(__name__)

# Bounded network behaviour for every S3 call
CLIENT_CONFIG = Config(
    connect_timeout=5,
    read_timeout=30,
    retries={"max_attempts": 3, "mode": "standard"},
    signature_version="s3v4",
)

MISSING_OBJECT_CODES = {"NoSuchKey", "404", "NotFound"}


def _build_s3_client(settings: Settings, endpoint_url: Optional[str]) -> "S3Client":
    return boto3.client(
        "s3",
        endpoint_url=endpoint_url,
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
        region_name=settings.aws_region,
        config=CLIENT_CONFIG,
    )


class ObjectStore:
    """Put/get/delete objects by path in a single bucket."""

    def __init__(
        self,
        bucket_name: str,
        public_base_url: str,
        s3_client: "S3Client",
        presign_client: Optional["S3Client"] = None,
    ):
        self.bucket_name = bucket_name
        self.public_base_url = public_base_url.rstrip("/")
        self.s3_client = s3_client
        # URLs handed to browsers may need a different host than the one the
        # services use (e.g. a container network name)
        self.presign_client = presign_client or s3_client

    @classmethod
    def from_settings(cls, settings: Settings) -> "ObjectStore":
        s3_client = _build_s3_client(settings, settings.aws_endpoint_url)
        presign_client = None
        if settings.aws_public_endpoint_url:
            presign_client = _build_s3_client(settings, settings.aws_public_endpoint_url)

        logger.info(f"ObjectStore initialized")
        logger.info(f"  Bucket: {settings.s3_bucket_name}")
        logger.info(f"  Endpoint: {settings.aws_endpoint_url}")
        return cls(
            bucket_name=settings.s3_bucket_name,
            public_base_url=settings.direct_link_base,
            s3_client=s3_client,
            presign_client=presign_client,
        )

    def put(self, path: str, data: bytes, content_type: Optional[str] = None) -> None:
        """
        Write an object, overwriting whatever is at `path`.

        :param path: object key in the bucket.
        :param data: the object body.
        :param content_type: MIME type stored with the object.
        """
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=path,
                Body=data,
                ContentType=content_type or "application/octet-stream",
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to put {path}: {e}") from e
        logger.info(f"Stored {len(data)} bytes at {path}")

    def get(self, path: str) -> Optional[bytes]:
        """Read an object's bytes, or None when nothing exists at `path`."""
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=path)
            return response["Body"].read()
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in MISSING_OBJECT_CODES:
                return None
            raise StorageError(f"Failed to get {path}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to get {path}: {e}") from e

    def delete(self, path: str) -> None:
        """Delete an object. Deleting a missing object is not an error."""
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=path)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to delete {path}: {e}") from e
        logger.info(f"Deleted object {path}")

    def exists(self, path: str) -> bool:
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=path)
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in MISSING_OBJECT_CODES:
                return False
            raise StorageError(f"Failed to stat {path}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to stat {path}: {e}") from e

    def mint_upload_url(self, path: str, ttl_seconds: int, content_type: Optional[str] = None) -> str:
        """
        Generate a presigned PUT URL so a client can upload bytes directly.

        :param path: object key the upload will land at.
        :param ttl_seconds: how long the URL stays valid.
        :param content_type: when given, the client must send the same Content-Type.
        """
        params = {"Bucket": self.bucket_name, "Key": path}
        if content_type:
            params["ContentType"] = content_type
        try:
            return self.presign_client.generate_presigned_url(
                ClientMethod="put_object",
                Params=params,
                ExpiresIn=ttl_seconds,
                HttpMethod="PUT",
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to presign {path}: {e}") from e

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{path}"

    def ping(self) -> bool:
        """Check the bucket is reachable."""
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
            return True
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"Bucket {self.bucket_name} not reachable: {e}")
            return False
