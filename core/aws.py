"""
AWS client configuration

The S3 and DynamoDB clients are created once per process and shared by
every request; boto3 low-level clients are safe for concurrent use.
"""

import boto3
from botocore.config import Config

from core.config import get_settings
from core.logger import logger

s3_client = None
dynamodb_client = None


def _client_kwargs(endpoint_url: str | None) -> dict:
    settings = get_settings()
    kwargs = {"region_name": settings.AWS_REGION}
    if endpoint_url:
        kwargs["endpoint_url"] = endpoint_url
    if settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
        kwargs["aws_access_key_id"] = settings.AWS_ACCESS_KEY_ID
        kwargs["aws_secret_access_key"] = settings.AWS_SECRET_ACCESS_KEY
    return kwargs


def get_s3_client():
    """Return the shared boto3 S3 client, creating it on first use"""
    global s3_client

    if s3_client:
        return s3_client

    settings = get_settings()
    addressing_style = "path" if settings.S3_FORCE_PATH_STYLE else "auto"
    config = Config(
        signature_version="s3v4",
        s3={"addressing_style": addressing_style},
        retries={"max_attempts": settings.S3_MAX_ERROR_RETRY, "mode": "standard"},
        connect_timeout=settings.AWS_TIMEOUT_SECONDS,
        read_timeout=settings.AWS_TIMEOUT_SECONDS,
    )
    s3_client = boto3.client(
        "s3", config=config, **_client_kwargs(settings.S3_ENDPOINT_URL)
    )
    logger.info("Created S3 client for bucket '%s'", settings.S3_BUCKET_NAME)
    return s3_client


def get_dynamodb_client():
    """Return the shared boto3 DynamoDB client, creating it on first use"""
    global dynamodb_client

    if dynamodb_client:
        return dynamodb_client

    settings = get_settings()
    config = Config(
        retries={"max_attempts": settings.S3_MAX_ERROR_RETRY, "mode": "standard"},
        connect_timeout=settings.AWS_TIMEOUT_SECONDS,
        read_timeout=settings.AWS_TIMEOUT_SECONDS,
    )
    dynamodb_client = boto3.client(
        "dynamodb", config=config, **_client_kwargs(settings.DYNAMODB_ENDPOINT_URL)
    )
    logger.info(
        "Created DynamoDB client for table '%s'", settings.DYNAMODB_TABLE_NAME
    )
    return dynamodb_client


def reset_clients():
    """
    Drop the cached clients.
    This is useful for tests that need to switch between different settings.
    """
    global s3_client, dynamodb_client
    s3_client = None
    dynamodb_client = None
