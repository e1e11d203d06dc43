import hashlib
import io
import uuid
from urllib.parse import quote

import pytest
from botocore.exceptions import ClientError
from botocore.response import StreamingBody
from fastapi.testclient import TestClient

from core.config import get_settings
from core.deps import get_dynamodb_client, get_s3_client
from core.metadata_store import MetadataStore
from core.object_store import ObjectStore
from main import app


def make_client_error(code: str, operation: str, http_status: int = 400) -> ClientError:
    """Build a botocore ClientError the way the AWS SDK reports it"""
    return ClientError(
        {
            "Error": {"Code": code, "Message": f"Simulated {code}"},
            "ResponseMetadata": {"HTTPStatusCode": http_status},
        },
        operation,
    )


def make_file_key(filename: str = "file.bin") -> str:
    return f"{uuid.uuid4()}_{filename}"


class MockS3Client:
    """Mock S3 client for testing"""

    def __init__(self):
        self.objects = {}  # {key: {"Body": bytes, "ContentType": str}}
        self.uploads = {}  # {upload_id: {"Key": str, "ContentType": str, "Parts": {}}}
        self.calls = []  # [(operation, kwargs)]
        self.opened_bodies = []  # raw streams handed out by get_object
        self.errors = {}  # {operation: ClientError}

    def put_blob(self, key: str, data: bytes, content_type: str = "application/octet-stream"):
        """Store an object directly, bypassing the multipart API"""
        self.objects[key] = {"Body": data, "ContentType": content_type}

    def simulate_error(self, operation: str, code: str = "InternalError", http_status: int = 500):
        """
        Configure an operation to raise a ClientError

        Args:
            operation: Client method name, e.g. "upload_part"
            code: AWS error code
            http_status: HTTP status reported in the response metadata
        """
        self.errors[operation] = make_client_error(code, operation, http_status)

    def operations(self) -> list[str]:
        return [operation for operation, _ in self.calls]

    def _record(self, operation: str, **kwargs):
        self.calls.append((operation, kwargs))
        if operation in self.errors:
            raise self.errors[operation]

    def create_multipart_upload(self, Bucket: str, Key: str, ContentType: str):
        self._record("create_multipart_upload", Bucket=Bucket, Key=Key, ContentType=ContentType)
        upload_id = uuid.uuid4().hex
        self.uploads[upload_id] = {"Key": Key, "ContentType": ContentType, "Parts": {}}
        return {"UploadId": upload_id, "Bucket": Bucket, "Key": Key}

    def upload_part(self, Bucket: str, Key: str, UploadId: str, PartNumber: int,
                    Body: bytes, ContentLength: int):
        self._record(
            "upload_part", Bucket=Bucket, Key=Key, UploadId=UploadId,
            PartNumber=PartNumber, ContentLength=ContentLength, Size=len(Body),
        )
        assert ContentLength == len(Body)
        self.uploads[UploadId]["Parts"][PartNumber] = Body
        return {"ETag": f'"{hashlib.md5(Body).hexdigest()}"'}

    def complete_multipart_upload(self, Bucket: str, Key: str, UploadId: str, MultipartUpload: dict):
        self._record("complete_multipart_upload", Bucket=Bucket, Key=Key, UploadId=UploadId,
                     MultipartUpload=MultipartUpload)
        upload = self.uploads.pop(UploadId)
        data = b""
        for part in MultipartUpload["Parts"]:
            body = upload["Parts"][part["PartNumber"]]
            assert part["ETag"] == f'"{hashlib.md5(body).hexdigest()}"'
            data += body
        self.put_blob(Key, data, upload["ContentType"])
        return {"Bucket": Bucket, "Key": Key}

    def head_object(self, Bucket: str, Key: str):
        self._record("head_object", Bucket=Bucket, Key=Key)
        if Key not in self.objects:
            raise make_client_error("404", "HeadObject", 404)
        obj = self.objects[Key]
        return {"ContentLength": len(obj["Body"]), "ContentType": obj["ContentType"]}

    def get_object(self, Bucket: str, Key: str):
        self._record("get_object", Bucket=Bucket, Key=Key)
        if Key not in self.objects:
            raise make_client_error("NoSuchKey", "GetObject", 404)
        obj = self.objects[Key]
        raw = io.BytesIO(obj["Body"])
        self.opened_bodies.append(raw)
        return {
            "Body": StreamingBody(raw, len(obj["Body"])),
            "ContentType": obj["ContentType"],
            "ContentLength": len(obj["Body"]),
        }

    def generate_presigned_url(self, ClientMethod: str, Params: dict = None,
                               ExpiresIn: int = 3600, HttpMethod: str = None):
        self._record("generate_presigned_url", ClientMethod=ClientMethod, Params=Params,
                     ExpiresIn=ExpiresIn, HttpMethod=HttpMethod)
        url = f"https://{Params['Bucket']}.s3.amazonaws.com/{quote(Params['Key'])}"
        url += f"?X-Amz-Expires={ExpiresIn}"
        if "ResponseContentDisposition" in Params:
            url += f"&response-content-disposition={quote(Params['ResponseContentDisposition'])}"
        return url


class MockDynamoDBClient:
    """Mock DynamoDB client for testing"""

    def __init__(self, query_page_size: int = 1000):
        self.items = {}  # {Filename: item}, insertion ordered
        self.calls = []
        self.errors = {}
        self.query_page_size = query_page_size

    def add_record(self, key: str, file_hash: str, uploaded_at: str = "2025-01-01T00:00:00+00:00"):
        self.items[key] = {
            "Filename": {"S": key},
            "FileHash": {"S": file_hash},
            "UploadedAt": {"S": uploaded_at},
        }

    def simulate_error(self, operation: str, code: str = "InternalServerError", http_status: int = 500):
        self.errors[operation] = make_client_error(code, operation, http_status)

    def operations(self) -> list[str]:
        return [operation for operation, _ in self.calls]

    def _record(self, operation: str, **kwargs):
        self.calls.append((operation, kwargs))
        if operation in self.errors:
            raise self.errors[operation]

    @staticmethod
    def _page(items: list, limit: int, start_key: dict | None):
        start = 0
        if start_key:
            keys = [item["Filename"]["S"] for item in items]
            start = keys.index(start_key["Filename"]["S"]) + 1
        page = items[start:start + limit]
        response = {"Items": page, "Count": len(page)}
        # Like DynamoDB, a full page carries a LastEvaluatedKey even when
        # nothing follows it
        if len(page) == limit:
            response["LastEvaluatedKey"] = {"Filename": page[-1]["Filename"]}
        return response

    def put_item(self, TableName: str, Item: dict):
        self._record("put_item", TableName=TableName, Item=Item)
        self.items[Item["Filename"]["S"]] = Item
        return {}

    def scan(self, TableName: str, Limit: int, ExclusiveStartKey: dict = None, **kwargs):
        self._record("scan", TableName=TableName, Limit=Limit,
                     ExclusiveStartKey=ExclusiveStartKey, **kwargs)
        return self._page(list(self.items.values()), Limit, ExclusiveStartKey)

    def query(self, TableName: str, IndexName: str, KeyConditionExpression: str,
              ExpressionAttributeValues: dict, ExclusiveStartKey: dict = None, **kwargs):
        self._record("query", TableName=TableName, IndexName=IndexName,
                     KeyConditionExpression=KeyConditionExpression,
                     ExpressionAttributeValues=ExpressionAttributeValues,
                     ExclusiveStartKey=ExclusiveStartKey, **kwargs)
        wanted = ExpressionAttributeValues[":hashCode"]["S"]
        matches = [item for item in self.items.values() if item["FileHash"]["S"] == wanted]
        return self._page(matches, self.query_page_size, ExclusiveStartKey)


@pytest.fixture(name="mock_s3_client")
def mock_s3_client_fixture():
    """Provide a mock S3 client for testing"""
    return MockS3Client()


@pytest.fixture(name="mock_dynamodb_client")
def mock_dynamodb_client_fixture():
    """Provide a mock DynamoDB client for testing"""
    return MockDynamoDBClient()


@pytest.fixture(name="object_store")
def object_store_fixture(mock_s3_client: MockS3Client) -> ObjectStore:
    return ObjectStore(mock_s3_client, "storage")


@pytest.fixture(name="metadata_store")
def metadata_store_fixture(mock_dynamodb_client: MockDynamoDBClient) -> MetadataStore:
    return MetadataStore(mock_dynamodb_client, "Files", "FileHashIndex")


@pytest.fixture(name="client")
def client_fixture(
    mock_s3_client: MockS3Client,
    mock_dynamodb_client: MockDynamoDBClient,
):
    def get_s3_client_override():
        return mock_s3_client

    def get_dynamodb_client_override():
        return mock_dynamodb_client

    app.dependency_overrides[get_s3_client] = get_s3_client_override
    app.dependency_overrides[get_dynamodb_client] = get_dynamodb_client_override

    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Drop cached settings so environment changes made by a test do not leak"""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
