"""
Object storage clients.

S3ObjectStore is the production store (boto3). Anything with a matching
put_object() can stand in for it, which is how tests avoid the network.
"""
import logging
from typing import Optional, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """An upload was rejected or could not be sent."""
    pass


class ObjectStore(Protocol):
    """Key-addressed durable store. Uploads overwrite by key."""

    def put_object(self, key: str, data: bytes, content_type: str) -> None:
        ...


class S3ObjectStore:
    """Uploads to a single S3 bucket."""

    def __init__(self, bucket_name: str, region: str, client=None):
        self._bucket_name = bucket_name
        # Credentials come from the standard AWS provider chain
        self._client = client or boto3.client("s3", region_name=region)

    @property
    def bucket_name(self) -> str:
        return self._bucket_name

    def put_object(self, key: str, data: bytes, content_type: str) -> None:
        """
        Raises:
            StorageError: If S3 rejects the upload or the request fails
        """
        try:
            self._client.put_object(
                Bucket=self._bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except ClientError as e:
            code: Optional[str] = e.response.get("Error", {}).get("Code")
            raise StorageError(f"S3 rejected {key}: {code or e}") from e
        except BotoCoreError as e:
            raise StorageError(f"S3 request failed for {key}: {e}") from e
