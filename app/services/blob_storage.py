import logging
import os
import uuid
from typing import Any, Dict, Optional

import boto3

from persona_engine.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def build_s3_client(
    access_key_id: Optional[str],
    secret_access_key: Optional[str],
    region: Optional[str],
):
    session = boto3.Session(
        aws_access_key_id=access_key_id,
        aws_secret_access_key=secret_access_key,
        region_name=region,
    )
    return session.client("s3")


def suffixed_key(filename: str) -> str:
    """`report.pdf` -> `report-1a2b3c4d.pdf`."""
    base, ext = os.path.splitext(os.path.basename(filename) or "upload")
    return f"{base}-{uuid.uuid4().hex[:8]}{ext}"


class BlobStorage:
    """Public object storage for uploaded campaign documents."""

    def __init__(self, s3_client, bucket: Optional[str], public_base_url: Optional[str] = None, region: Optional[str] = None):
        self.s3 = s3_client
        self.bucket = bucket
        self.public_base_url = public_base_url
        self.region = region

    def url_for(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{key}"
        if self.region:
            return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    def put(self, filename: str, data: bytes, content_type: Optional[str] = None) -> Dict[str, Any]:
        """Store `data` under a random-suffixed key. Returns url, size and the stored filename."""
        if not self.bucket:
            raise ConfigurationError("BLOB_BUCKET not configured")

        key = suffixed_key(filename)
        extra = {"ContentType": content_type} if content_type else {}
        self.s3.put_object(Bucket=self.bucket, Key=key, Body=data, **extra)

        url = self.url_for(key)
        logger.info(f"Upload complete: {url}")
        return {"url": url, "size": len(data), "filename": key}
