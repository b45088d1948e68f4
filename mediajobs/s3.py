import os
import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError
from django.conf import settings

# Error codes S3/MinIO use for a key that is already gone.
NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}


def _client(endpoint_url: str):
    session = boto3.session.Session(
        aws_access_key_id=settings.S3_ACCESS_KEY,
        aws_secret_access_key=settings.S3_SECRET_KEY,
        region_name=settings.S3_REGION,
    )
    return session.client(
        "s3",
        endpoint_url=endpoint_url,  # e.g. http://127.0.0.1:9000
        config=BotoConfig(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        ),
    )


def get_s3_client():
    """
    SDK client for server-side download/upload/delete.
    """
    return _client(settings.S3_ENDPOINT_URL)


def get_presign_client():
    """
    Separate client for generating presigned URLs that the browser will call.
    Uses S3_PUBLIC_ENDPOINT so the URL host matches what the client reaches.
    """
    return _client(os.getenv("S3_PUBLIC_ENDPOINT", settings.S3_PUBLIC_ENDPOINT))


def create_presigned_put(key: str, content_type: str | None = None, expires: int | None = None) -> dict:
    """
    Create a presigned PUT URL to upload a single object directly to S3/MinIO.

    ContentType is deliberately left out of the signed params so clients that
    omit or alter the header still match the signature.
    """
    s3 = get_presign_client()
    url = s3.generate_presigned_url(
        ClientMethod="put_object",
        Params={"Bucket": settings.S3_BUCKET, "Key": key},
        ExpiresIn=expires or settings.S3_PRESIGN_EXPIRE_SECONDS,
        HttpMethod="PUT",
    )
    headers = {"Content-Type": content_type} if content_type else {}
    return {"url": url, "headers": headers}


def public_url(key: str) -> str:
    """Direct object URL against the public endpoint. Posts store this as their media URL."""
    base = settings.S3_PUBLIC_ENDPOINT.rstrip("/")
    return f"{base}/{settings.S3_BUCKET}/{key.lstrip('/')}"


def key_from_url(url: str) -> str:
    """Inverse of public_url. Anything that is not one of our URLs is returned unchanged."""
    prefix = f"{settings.S3_PUBLIC_ENDPOINT.rstrip('/')}/{settings.S3_BUCKET}/"
    if url.startswith(prefix):
        return url[len(prefix):]
    return url


def download_file(key: str, local_path: str):
    s3 = get_s3_client()
    s3.download_file(settings.S3_BUCKET, key, str(local_path))


def upload_file(local_path: str, key: str, content_type: str | None = None):
    """
    Upload a single file to S3/MinIO with an optional Content-Type.
    """
    s3 = get_s3_client()
    extra = {}
    if content_type:
        extra["ContentType"] = content_type
    s3.upload_file(str(local_path), settings.S3_BUCKET, key, ExtraArgs=extra or None)


def delete_object(key: str):
    s3 = get_s3_client()
    s3.delete_object(Bucket=settings.S3_BUCKET, Key=key)


def is_not_found(exc: Exception) -> bool:
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        return str(error.get("Code")) in NOT_FOUND_CODES or status == 404
    message = str(exc)
    return any(code in message for code in NOT_FOUND_CODES) or "not found" in message.lower()
