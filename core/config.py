"""
Application Configuration
Add constants, secrets, env variables here
"""

from functools import lru_cache
import os
import json
from pathlib import Path
from pydantic import computed_field, PrivateAttr
from pydantic_settings import BaseSettings, SettingsConfigDict
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from dotenv import load_dotenv

# Load .env file into os.environ so os.getenv() works correctly
# This must happen before Settings class is instantiated
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

KIB = 1024
MIB = 1024 * KIB
GIB = 1024 * MIB


def get_secret(secret_name: str, region_name: str) -> dict:
    """
    Retrieve secrets from AWS Secrets Manager

    Args:
        secret_name: Name of the secret in Secrets Manager
        region_name: AWS region where secret is stored

    Returns:
        dict: Parsed secret value

    Raises:
        ClientError: If secret cannot be retrieved
    """
    session = boto3.session.Session()
    client = session.client(
        service_name='secretsmanager',
        region_name=region_name
    )
    try:
        get_secret_value_response = client.get_secret_value(
            SecretId=secret_name
        )
    except ClientError:
        raise
    secret = get_secret_value_response['SecretString']
    return json.loads(
        secret.replace('\n', '')
    )


# Define settings class for univeral access
class Settings(BaseSettings):
    # Computed or constant values
    client_origin: str | None = os.getenv("client_origin")
    LOG_LEVEL: str = "INFO"

    # Cache for AWS Secrets Manager to avoid multiple API calls
    # Note: Must use PrivateAttr for Pydantic v2 private attributes
    _secret_cache: dict | None = PrivateAttr(default=None)

    def _get_config_value(
        self,
        env_var_name: str,
        secret_key_name: str | None = None,
        default: str | None = None
    ) -> str | None:
        """
        Get configuration value from environment variable or AWS Secrets Manager (with caching).

        Args:
            env_var_name: Environment variable name to check first
            secret_key_name: Key name in AWS Secrets (defaults to env_var_name if not provided)
            default: Default value to return if not found in env or secrets

        Returns:
            Configuration value, or default value if not found
        """
        # 1. Check environment variable first
        env_value = os.getenv(env_var_name)
        if env_value:
            return env_value

        # 2. Try to get from AWS Secrets Manager with caching
        if secret_key_name is None:
            secret_key_name = env_var_name

        env_secret = os.getenv('ENV_SECRETS')
        if env_secret:
            try:
                if self._secret_cache is None:
                    self._secret_cache = get_secret(env_secret, self.AWS_REGION)
                secret_value = self._secret_cache.get(secret_key_name)
                if secret_value is not None:
                    return secret_value
            except (ClientError, BotoCoreError):
                pass

        # 3. Return default value if provided
        return default

    # AWS Credentials
    AWS_ACCESS_KEY_ID: str | None = os.getenv("AWS_ACCESS_KEY_ID")
    AWS_SECRET_ACCESS_KEY: str | None = os.getenv("AWS_SECRET_ACCESS_KEY")
    AWS_REGION: str = os.getenv("AWS_REGION", "us-east-1")
    AWS_TIMEOUT_SECONDS: int = 30

    # Object store (S3)
    @computed_field
    @property
    def S3_BUCKET_NAME(self) -> str:
        """Get the blob bucket name from env or secrets, defaults to 'storage'"""
        return self._get_config_value("S3_BUCKET_NAME", default="storage")

    S3_ENDPOINT_URL: str | None = None
    S3_FORCE_PATH_STYLE: bool = False
    S3_MAX_ERROR_RETRY: int = 3

    # Metadata index (DynamoDB)
    @computed_field
    @property
    def DYNAMODB_TABLE_NAME(self) -> str:
        """Get the metadata table name from env or secrets, defaults to 'Files'"""
        return self._get_config_value("DYNAMODB_TABLE_NAME", default="Files")

    DYNAMODB_ENDPOINT_URL: str | None = None
    DYNAMODB_HASH_INDEX: str = "FileHashIndex"

    # Upload / listing / download tuning
    MIN_UPLOAD_SIZE: int = 128 * KIB
    MAX_UPLOAD_SIZE: int = 2 * GIB
    UPLOAD_PART_SIZE: int = 5 * MIB
    SCAN_PAGE_SIZE: int = 100
    RECONCILE_MAX_WORKERS: int = 8
    DOWNLOAD_URL_EXPIRY_MINUTES: int = 120
    STREAM_CHUNK_SIZE: int = 80 * KIB

    # Read environment variables from .env file, if it exists
    # extra='ignore' prevents validation errors from extra env vars
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Export settings
@lru_cache
def get_settings() -> Settings:
    """
    Get settings instance, cached for performance
    """
    return Settings()


if __name__ == "__main__":
    print(get_settings().S3_BUCKET_NAME, get_settings().DYNAMODB_TABLE_NAME)
