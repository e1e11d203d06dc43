"""
Tests for the operator scripts
"""

from unittest.mock import Mock

from api.files.services import list_files
from scripts.init_storage import StorageInitializer
from scripts.report_orphans import find_orphans
from tests.conftest import make_client_error


class TestStorageInitializer:
    """Test suite for StorageInitializer"""

    def test_creates_missing_resources(self):
        s3 = Mock()
        s3.head_bucket.side_effect = make_client_error("404", "HeadBucket", 404)
        dynamodb = Mock()
        dynamodb.describe_table.side_effect = make_client_error(
            "ResourceNotFoundException", "DescribeTable"
        )

        initializer = StorageInitializer(s3, dynamodb)
        initializer.ensure_bucket("storage")
        initializer.ensure_table("Files", "FileHashIndex")

        s3.create_bucket.assert_called_once()
        assert s3.create_bucket.call_args.kwargs["Bucket"] == "storage"
        table_kwargs = dynamodb.create_table.call_args.kwargs
        assert table_kwargs["KeySchema"] == [{"AttributeName": "Filename", "KeyType": "HASH"}]
        assert table_kwargs["GlobalSecondaryIndexes"][0]["IndexName"] == "FileHashIndex"
        assert initializer.created == ["bucket:storage", "table:Files"]

    def test_existing_resources_untouched(self):
        s3 = Mock()
        dynamodb = Mock()

        initializer = StorageInitializer(s3, dynamodb)
        initializer.ensure_bucket("storage")
        initializer.ensure_table("Files", "FileHashIndex")

        s3.create_bucket.assert_not_called()
        dynamodb.create_table.assert_not_called()
        assert initializer.created == []

    def test_dry_run(self):
        s3 = Mock()
        s3.head_bucket.side_effect = make_client_error("NoSuchBucket", "HeadBucket", 404)
        dynamodb = Mock()
        dynamodb.describe_table.side_effect = make_client_error(
            "ResourceNotFoundException", "DescribeTable"
        )

        initializer = StorageInitializer(s3, dynamodb, dry_run=True)
        initializer.ensure_bucket("storage")
        initializer.ensure_table("Files", "FileHashIndex")

        s3.create_bucket.assert_not_called()
        dynamodb.create_table.assert_not_called()


def test_find_orphans(metadata_store, object_store, mock_s3_client, mock_dynamodb_client):
    for key in ("k1_a", "k2_b", "k3_c"):
        mock_dynamodb_client.add_record(key, "a" * 64)
    mock_s3_client.put_blob("k2_b", b"x")

    orphans, scanned = find_orphans(metadata_store, object_store, page_size=2)

    assert scanned == 3
    assert [record.key for record in orphans] == ["k1_a", "k3_c"]
    assert mock_dynamodb_client.operations().count("put_item") == 0


def test_find_orphans_matches_listing(
    metadata_store, object_store, mock_s3_client, mock_dynamodb_client
):
    """Orphans reported by the script are exactly the records the listing hides"""
    for i in range(7):
        key = f"k{i}_file"
        mock_dynamodb_client.add_record(key, "b" * 64)
        if i % 3:
            mock_s3_client.put_blob(key, b"x")

    orphans, scanned = find_orphans(metadata_store, object_store, page_size=3, max_workers=4)
    listing = list_files(metadata_store, object_store, page_size=3)

    listed = {record.file_name for record in listing.records}
    assert scanned == 7
    assert [record.key for record in orphans] == ["k0_file", "k3_file", "k6_file"]
    assert listed.isdisjoint(record.key for record in orphans)
    assert len(listed) + len(orphans) == scanned
