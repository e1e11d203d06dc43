"""
Object store adapter (S3)

Wraps a boto3 S3 client bound to one bucket and exposes the calls the file
services need. Every botocore failure is translated into a FileStorageError.
"""

from dataclasses import dataclass
from typing import Any, Iterator

from core.errors import AWS_ERRORS, NotFoundError, translate_client_error


@dataclass
class BlobStream:
    """An open read stream on a stored blob"""

    content_type: str
    content_length: int | None
    body: Any  # botocore StreamingBody

    def iter_chunks(self, chunk_size: int) -> Iterator[bytes]:
        while True:
            chunk = self.body.read(chunk_size)
            if not chunk:
                break
            yield chunk

    def close(self) -> None:
        self.body.close()


class ObjectStore:
    """S3 bucket operations used by the upload and download paths"""

    def __init__(self, s3_client, bucket: str):
        self.client = s3_client
        self.bucket = bucket

    def initiate_streamed_write(self, key: str, content_type: str) -> str:
        """Start a multipart upload and return its upload id"""
        try:
            response = self.client.create_multipart_upload(
                Bucket=self.bucket, Key=key, ContentType=content_type
            )
        except AWS_ERRORS as exc:
            raise translate_client_error(exc, "CreateMultipartUpload") from exc
        return response["UploadId"]

    def write_part(
        self, upload_id: str, key: str, part_number: int, data: bytes
    ) -> dict:
        """Upload one part and return the token needed to commit it"""
        try:
            response = self.client.upload_part(
                Bucket=self.bucket,
                Key=key,
                UploadId=upload_id,
                PartNumber=part_number,
                Body=data,
                ContentLength=len(data),
            )
        except AWS_ERRORS as exc:
            raise translate_client_error(exc, f"UploadPart #{part_number}") from exc
        return {"PartNumber": part_number, "ETag": response["ETag"]}

    def complete_write(self, upload_id: str, key: str, parts: list[dict]) -> None:
        """Commit all uploaded parts, in part-number order"""
        try:
            self.client.complete_multipart_upload(
                Bucket=self.bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts},
            )
        except AWS_ERRORS as exc:
            raise translate_client_error(exc, "CompleteMultipartUpload") from exc

    def exists(self, key: str) -> bool:
        """Check whether a blob is stored under key"""
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
        except AWS_ERRORS as exc:
            error = translate_client_error(exc, "HeadObject", not_found_message=key)
            if isinstance(error, NotFoundError):
                return False
            raise error from exc
        return True

    def open_read_stream(self, key: str) -> BlobStream:
        """Open a streamed read of the blob stored under key"""
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
        except AWS_ERRORS as exc:
            raise translate_client_error(
                exc, "GetObject", not_found_message="File does not exist."
            ) from exc
        return BlobStream(
            content_type=response.get("ContentType") or "application/octet-stream",
            content_length=response.get("ContentLength"),
            body=response["Body"],
        )

    def sign_url(
        self,
        key: str,
        method: str = "GET",
        expires_in: int = 7200,
        content_disposition: str | None = None,
    ) -> str:
        """Issue a pre-signed URL granting time-limited access to key"""
        client_method = {"GET": "get_object", "PUT": "put_object"}[method]
        params = {"Bucket": self.bucket, "Key": key}
        if content_disposition:
            params["ResponseContentDisposition"] = content_disposition
        try:
            return self.client.generate_presigned_url(
                client_method,
                Params=params,
                ExpiresIn=int(expires_in),
                HttpMethod=method,
            )
        except AWS_ERRORS as exc:
            raise translate_client_error(exc, "GeneratePresignedUrl") from exc
