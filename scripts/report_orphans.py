#!/usr/bin/env python
"""
Report metadata records whose blob is missing from the object store.

Orphans are hidden from listings but never deleted by the API; this script
only prints them so an operator can decide what to do.

Usage:
    PYTHONPATH=.
    python scripts/report_orphans.py
    python scripts/report_orphans.py --json
"""

import argparse
import json
import sys

from api.files.services import partition_by_existence, scan_all
from core.aws import get_dynamodb_client, get_s3_client
from core.config import get_settings
from core.errors import FileStorageError
from core.logger import logger
from core.metadata_store import MetadataStore
from core.models import FileRecord
from core.object_store import ObjectStore


def find_orphans(
    metadata_store: MetadataStore,
    object_store: ObjectStore,
    page_size: int,
    max_workers: int = 1,
) -> tuple[list[FileRecord], int]:
    """
    Scan every metadata record and collect those without a blob.

    Returns:
        Tuple of (orphan records, total records scanned)
    """
    records = scan_all(metadata_store, page_size)
    _, orphans = partition_by_existence(object_store, records, max_workers)
    return orphans, len(records)


def main():
    parser = argparse.ArgumentParser(
        description="List metadata records whose blob no longer exists",
    )
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    args = parser.parse_args()

    settings = get_settings()
    metadata_store = MetadataStore(
        get_dynamodb_client(), settings.DYNAMODB_TABLE_NAME, settings.DYNAMODB_HASH_INDEX
    )
    object_store = ObjectStore(get_s3_client(), settings.S3_BUCKET_NAME)

    try:
        orphans, scanned = find_orphans(
            metadata_store,
            object_store,
            settings.SCAN_PAGE_SIZE,
            max_workers=settings.RECONCILE_MAX_WORKERS,
        )
    except FileStorageError as e:
        logger.error(f"Failed to scan for orphans: {e.message}")
        sys.exit(1)

    if args.json:
        print(json.dumps([record.model_dump() for record in orphans], indent=2))
    else:
        for record in orphans:
            print(f"{record.key}\t{record.content_hash}\t{record.uploaded_at}")
        print(f"\n{len(orphans)} orphan(s) out of {scanned} record(s)")


if __name__ == "__main__":
    main()
