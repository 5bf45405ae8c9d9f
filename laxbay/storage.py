# laxbay/storage.py
"""Listing images in S3-compatible object storage.

Postings store either an object key or an external URL; `ImageRef` is the
only thing the rest of the service knows about where an image lives.
"""
import base64
import binascii
import re
import secrets
import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from . import config
from .errors import ConfigurationError, UpstreamError, ValidationFailed
from .utils import logger

MAX_IMAGE_BYTES = 5 * 1024 * 1024
ALLOWED_CONTENT_TYPE = re.compile(r"^image/(png|jpe?g|webp)$", re.I)
DATA_URL = re.compile(r"^data:(image/(?:png|jpeg|jpg|webp));base64,(.+)$", re.I | re.S)
_EXTENSIONS = {"image/png": "png", "image/jpeg": "jpg", "image/jpg": "jpg", "image/webp": "webp"}

_s3_client = None


@dataclass(frozen=True)
class ImageRef:
    """A stored image: an object key or an absolute external URL."""
    value: str

    @property
    def is_external(self):
        return self.value.startswith(("http://", "https://"))

    def resolve(self) -> str:
        if self.is_external:
            return self.value
        return object_public_url(self.value)


def object_public_url(key: str) -> str:
    # prefer a CDN / custom domain when configured
    encoded = quote(key, safe="/")
    if config.S3_PUBLIC_BASE_URL:
        return f"{config.S3_PUBLIC_BASE_URL.rstrip('/')}/{encoded}"
    if config.S3_ENDPOINT:
        return f"{config.S3_ENDPOINT.rstrip('/')}/{config.S3_BUCKET}/{encoded}"
    return f"https://{config.S3_BUCKET}.s3.{config.S3_REGION}.amazonaws.com/{encoded}"


def slug(value: str = "") -> str:
    return re.sub(r"[^a-z0-9._-]+", "-", str(value).lower()).strip("-")


def object_key(username: str, filename: str) -> str:
    ts = int(time.time() * 1000)
    rand = secrets.token_hex(4)
    return f"postings/{slug(username)}/{ts}-{rand}-{slug(filename)}"


def get_s3_client():
    """Lazily build a single S3 client from configuration."""
    global _s3_client
    if _s3_client is None:
        if not (config.S3_BUCKET and config.S3_ACCESS_KEY_ID and config.S3_SECRET_ACCESS_KEY):
            raise ConfigurationError("Object storage is not configured")
        _s3_client = boto3.client(
            "s3",
            region_name=config.S3_REGION,
            endpoint_url=config.S3_ENDPOINT or None,
            aws_access_key_id=config.S3_ACCESS_KEY_ID,
            aws_secret_access_key=config.S3_SECRET_ACCESS_KEY,
            config=Config(
                signature_version="s3v4",
                # compat endpoints (R2, Wasabi, MinIO) usually need path style
                s3={"addressing_style": "path" if config.S3_ENDPOINT else "virtual"},
            ),
        )
    return _s3_client


def presign_upload(username: str, filename: str, content_type: str, client=None) -> dict:
    if not filename or not content_type:
        raise ValidationFailed("filename and contentType are required")
    if not ALLOWED_CONTENT_TYPE.match(content_type):
        raise ValidationFailed("Only PNG, JPEG or WEBP images allowed")
    client = client or get_s3_client()
    key = object_key(username, filename)
    try:
        upload_url = client.generate_presigned_url(
            "put_object",
            Params={"Bucket": config.S3_BUCKET, "Key": key, "ContentType": content_type},
            ExpiresIn=config.S3_PRESIGN_EXPIRES,
        )
    except (BotoCoreError, ClientError) as e:
        logger.exception("Presign failed for %s: %s", key, e)
        raise UpstreamError("presign failed")
    return {
        "uploadUrl": upload_url,
        "key": key,
        "publicUrl": object_public_url(key),
        "expiresIn": config.S3_PRESIGN_EXPIRES,
    }


def decode_data_url(data_url: str):
    """Return (content_type, bytes) for a base64 image data URL."""
    m = DATA_URL.match(str(data_url).strip())
    if not m:
        raise ValidationFailed("Image must be a PNG, JPEG or WEBP data URL")
    content_type = m.group(1).lower()
    try:
        payload = base64.b64decode(m.group(2), validate=True)
    except (binascii.Error, ValueError):
        raise ValidationFailed("Image data is not valid base64")
    if len(payload) > MAX_IMAGE_BYTES:
        raise ValidationFailed("Image exceeds 5 MB")
    return content_type, payload


@dataclass(frozen=True)
class ImageUpload:
    """An image file received in a multipart form."""
    filename: str
    content_type: str
    data: bytes


def check_image(content_type: str, payload: bytes):
    if not ALLOWED_CONTENT_TYPE.match(content_type or ""):
        raise ValidationFailed("Only PNG, JPEG or WEBP images allowed")
    if not payload:
        raise ValidationFailed("Image file is empty")
    if len(payload) > MAX_IMAGE_BYTES:
        raise ValidationFailed("Image exceeds 5 MB")


def store_data_url(username: str, data_url: str, client=None) -> str:
    """Upload an inline data-URL image and return its object key."""
    content_type, payload = decode_data_url(data_url)
    return store_image(username, content_type, payload, client=client)


def store_upload(username: str, upload: ImageUpload, client=None) -> str:
    return store_image(username, upload.content_type, upload.data, filename=upload.filename, client=client)


def store_image(username: str, content_type: str, payload: bytes,
                filename: Optional[str] = None, client=None) -> str:
    """Put image bytes into the bucket and return the new object key."""
    check_image(content_type, payload)
    content_type = content_type.lower()
    client = client or get_s3_client()
    key = object_key(username, filename or f"image.{_EXTENSIONS[content_type]}")
    try:
        client.put_object(Bucket=config.S3_BUCKET, Key=key, Body=payload, ContentType=content_type)
    except (BotoCoreError, ClientError) as e:
        logger.exception("Upload failed for %s: %s", key, e)
        raise UpstreamError("image upload failed")
    logger.info("Stored image %s (%d bytes)", key, len(payload))
    return key


def is_data_url(value: Optional[str]) -> bool:
    return bool(value) and str(value).startswith("data:")
