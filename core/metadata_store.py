"""
Metadata store adapter (DynamoDB)

Items are stored with the attributes Filename (partition key), FileHash and
UploadedAt. FileHash is covered by a global secondary index so records can
be looked up by content hash.
"""

from dataclasses import dataclass, field

from core.models import FileRecord
from core.errors import AWS_ERRORS, UpstreamError, translate_client_error

KEY_ATTRIBUTE = "Filename"
HASH_ATTRIBUTE = "FileHash"
UPLOADED_AT_ATTRIBUTE = "UploadedAt"


@dataclass
class ScanPage:
    """One page of a table scan"""

    records: list[FileRecord]
    next_token: dict | None = field(default=None)


def _to_item(record: FileRecord) -> dict:
    return {
        KEY_ATTRIBUTE: {"S": record.key},
        HASH_ATTRIBUTE: {"S": record.content_hash},
        UPLOADED_AT_ATTRIBUTE: {"S": record.uploaded_at},
    }


def _from_item(item: dict) -> FileRecord:
    try:
        return FileRecord(
            key=item[KEY_ATTRIBUTE]["S"],
            content_hash=item[HASH_ATTRIBUTE]["S"],
            uploaded_at=item[UPLOADED_AT_ATTRIBUTE]["S"],
        )
    except KeyError as exc:
        raise UpstreamError(f"Malformed metadata item, missing {exc}") from exc


class MetadataStore:
    """DynamoDB table operations for file records"""

    def __init__(self, dynamodb_client, table_name: str, hash_index: str):
        self.client = dynamodb_client
        self.table_name = table_name
        self.hash_index = hash_index

    def put(self, record: FileRecord) -> None:
        try:
            self.client.put_item(TableName=self.table_name, Item=_to_item(record))
        except AWS_ERRORS as exc:
            raise translate_client_error(exc, "PutItem") from exc

    def scan(self, page_size: int, continuation_token: dict | None = None) -> ScanPage:
        """
        Read one page of the table.

        Args:
            page_size: Maximum number of items evaluated for this page
            continuation_token: LastEvaluatedKey of the previous page, or None
                to start from the beginning

        Returns:
            ScanPage with the records and the token for the next page
            (None once the table is exhausted)
        """
        kwargs = {
            "TableName": self.table_name,
            "ProjectionExpression": "#fn, #fh, #ua",
            "ExpressionAttributeNames": {
                "#fn": KEY_ATTRIBUTE,
                "#fh": HASH_ATTRIBUTE,
                "#ua": UPLOADED_AT_ATTRIBUTE,
            },
            "Limit": page_size,
        }
        if continuation_token:
            kwargs["ExclusiveStartKey"] = continuation_token
        try:
            response = self.client.scan(**kwargs)
        except AWS_ERRORS as exc:
            raise translate_client_error(exc, "Scan") from exc

        records = [_from_item(item) for item in response.get("Items", [])]
        return ScanPage(records=records, next_token=response.get("LastEvaluatedKey") or None)

    def query_by_hash(self, content_hash: str) -> list[FileRecord]:
        """Return every record whose FileHash equals content_hash"""
        kwargs = {
            "TableName": self.table_name,
            "IndexName": self.hash_index,
            "KeyConditionExpression": "#fh = :hashCode",
            "ExpressionAttributeNames": {"#fh": HASH_ATTRIBUTE},
            "ExpressionAttributeValues": {":hashCode": {"S": content_hash}},
        }
        records = []
        while True:
            try:
                response = self.client.query(**kwargs)
            except AWS_ERRORS as exc:
                raise translate_client_error(exc, "Query") from exc
            records.extend(_from_item(item) for item in response.get("Items", []))

            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            kwargs["ExclusiveStartKey"] = last_key
        return records
