#!/usr/bin/env python
"""
Create the object store bucket and the metadata table.

Intended for local stacks (LocalStack, MinIO + DynamoDB Local) and fresh
environments. Existing resources are left untouched.

Usage:
    PYTHONPATH=.
    python scripts/init_storage.py
    python scripts/init_storage.py --dry-run
"""

import argparse
import sys

from botocore.exceptions import BotoCoreError, ClientError

from core.aws import get_dynamodb_client, get_s3_client
from core.config import get_settings
from core.logger import logger
from core.metadata_store import HASH_ATTRIBUTE, KEY_ATTRIBUTE


class StorageInitializer:
    """Creates the bucket and table the file services expect."""

    def __init__(self, s3_client, dynamodb_client, dry_run: bool = False):
        self.s3_client = s3_client
        self.dynamodb_client = dynamodb_client
        self.dry_run = dry_run
        self.created = []

    def ensure_bucket(self, bucket: str) -> None:
        try:
            self.s3_client.head_bucket(Bucket=bucket)
            logger.info(f"Bucket '{bucket}' already exists.")
            return
        except ClientError as exc:
            if exc.response["Error"]["Code"] not in ("404", "NoSuchBucket", "NotFound"):
                raise

        if self.dry_run:
            logger.info(f"[DRY RUN] Would create bucket '{bucket}'")
            return

        kwargs = {"Bucket": bucket}
        region = get_settings().AWS_REGION
        if region and region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}
        self.s3_client.create_bucket(**kwargs)
        self.created.append(f"bucket:{bucket}")
        logger.info(f"Bucket '{bucket}' created successfully.")

    def ensure_table(self, table_name: str, hash_index: str) -> None:
        try:
            self.dynamodb_client.describe_table(TableName=table_name)
            logger.info(f"Table '{table_name}' already exists.")
            return
        except ClientError as exc:
            if exc.response["Error"]["Code"] != "ResourceNotFoundException":
                raise

        if self.dry_run:
            logger.info(
                f"[DRY RUN] Would create table '{table_name}' with index '{hash_index}'"
            )
            return

        self.dynamodb_client.create_table(
            TableName=table_name,
            AttributeDefinitions=[
                {"AttributeName": KEY_ATTRIBUTE, "AttributeType": "S"},
                {"AttributeName": HASH_ATTRIBUTE, "AttributeType": "S"},
            ],
            KeySchema=[{"AttributeName": KEY_ATTRIBUTE, "KeyType": "HASH"}],
            GlobalSecondaryIndexes=[
                {
                    "IndexName": hash_index,
                    "KeySchema": [{"AttributeName": HASH_ATTRIBUTE, "KeyType": "HASH"}],
                    "Projection": {"ProjectionType": "ALL"},
                }
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        self.created.append(f"table:{table_name}")
        logger.info(f"Table '{table_name}' created successfully.")


def main():
    parser = argparse.ArgumentParser(
        description="Create the bucket and metadata table used by the file storage API",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be created without making changes",
    )
    args = parser.parse_args()

    settings = get_settings()
    initializer = StorageInitializer(
        get_s3_client(), get_dynamodb_client(), dry_run=args.dry_run
    )
    try:
        initializer.ensure_bucket(settings.S3_BUCKET_NAME)
        initializer.ensure_table(
            settings.DYNAMODB_TABLE_NAME, settings.DYNAMODB_HASH_INDEX
        )
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Failed to initialize storage: {e}")
        sys.exit(1)

    print(f"Created: {', '.join(initializer.created) or 'nothing'}")


if __name__ == "__main__":
    main()
