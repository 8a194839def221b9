"""
S3Client - Canonical storage for processed photos (S3/MinIO).
"""

import logging
from dataclasses import dataclass
from typing import Optional

import boto3
from botocore.config import Config

from .config import S3Config


@dataclass
class StoredObject:
    """Location of an uploaded object."""
    url: str
    path: str


class S3Client:
    """
    Wrapper for S3/MinIO uploads.

    Objects are written under ``config.prefix``; the returned URL is either
    built from ``config.public_url`` or a presigned GET URL.
    """

    def __init__(self, config: S3Config, logger: Optional[logging.Logger] = None):
        """
        Initialize S3 client.

        Args:
            config: S3 configuration
            logger: Optional logger instance
        """
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

        self._client = boto3.client(
            's3',
            endpoint_url=config.endpoint,
            aws_access_key_id=config.access_key,
            aws_secret_access_key=config.secret_key,
            region_name=config.region,
            config=Config(
                signature_version='s3v4',
                s3={'addressing_style': 'path'}
            ),
            verify=config.verify_ssl
        )

    def build_key(self, *parts: str) -> str:
        """Join key parts under the configured prefix."""
        prefix = (self.config.prefix or '').strip('/')
        tail = '/'.join(p.strip('/') for p in parts if p)
        return f"{prefix}/{tail}" if prefix else tail

    def object_url(self, key: str) -> str:
        """Public or presigned URL for a key."""
        if self.config.public_url:
            return f"{self.config.public_url.rstrip('/')}/{key}"
        return self._client.generate_presigned_url(
            'get_object',
            Params={'Bucket': self.config.bucket, 'Key': key},
            ExpiresIn=self.config.url_expiry,
        )

    def upload(
        self,
        key: str,
        data: bytes,
        content_type: str = 'application/octet-stream'
    ) -> StoredObject:
        """
        Upload processed bytes.

        Args:
            key: Destination key (see ``build_key``)
            data: Object body
            content_type: MIME type stored on the object

        Returns:
            StoredObject with the URL and the storage path (``/<bucket>/<key>``)
        """
        self.logger.debug(f"Uploading: {key} ({len(data)} bytes)")
        self._client.put_object(
            Bucket=self.config.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
            CacheControl='public, max-age=31536000',
        )
        return StoredObject(
            url=self.object_url(key),
            path=f"/{self.config.bucket}/{key}",
        )
