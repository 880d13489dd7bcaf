import logging
from functools import lru_cache

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import settings
from app.core.exceptions import ObjectNotFoundError, StorageError

logger = logging.getLogger(__name__)

_MISSING_KEY_CODES = {"NoSuchKey", "NotFound", "404"}


def build_s3_client():
    return boto3.client(
        "s3",
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        region_name=settings.AWS_S3_REGION,
        endpoint_url=settings.AWS_S3_ENDPOINT_URL,
    )


class S3ObjectStore:
    """Opaque put/get/delete of binary blobs in one bucket."""

    def __init__(self, client, bucket: str, region: str = None):
        self.client = client
        self.bucket = bucket
        self.region = region

    def location(self, key: str) -> str:
        if self.region:
            return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"
        return f"s3://{self.bucket}/{key}"

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type or "application/octet-stream",
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("S3 put failed for key %s: %s", key, e)
            raise StorageError(f"Failed to store object {key}: {e}") from e
        return self.location(key)

    def get(self, key: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_KEY_CODES:
                raise ObjectNotFoundError(f"Object {key} not found") from e
            logger.error("S3 get failed for key %s: %s", key, e)
            raise StorageError(f"Failed to read object {key}: {e}") from e
        except BotoCoreError as e:
            logger.error("S3 get failed for key %s: %s", key, e)
            raise StorageError(f"Failed to read object {key}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error("S3 delete failed for key %s: %s", key, e)
            raise StorageError(f"Failed to delete object {key}: {e}") from e


@lru_cache()
def get_object_store() -> S3ObjectStore:
    return S3ObjectStore(build_s3_client(), settings.AWS_S3_BUCKET_NAME, settings.AWS_S3_REGION)
