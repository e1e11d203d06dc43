"""
Models for the Files API
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from core.errors import ErrorKind
from core.models import FileRecord, Status


class CamelModel(BaseModel):
    """Base for payloads exchanged with callers (camelCase on the wire)"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FileRecordPublic(CamelModel):
    """Public representation of a stored file"""

    file_name: str
    file_hash: str
    uploaded_at: str

    @classmethod
    def from_record(cls, record: FileRecord) -> "FileRecordPublic":
        return cls(
            file_name=record.key,
            file_hash=record.content_hash,
            uploaded_at=record.uploaded_at,
        )


class UploadResult(CamelModel):
    """Outcome of streaming a file into the object store"""

    status: Status
    key: str | None = None
    content_hash: str | None = None
    message: str = ""
    error: ErrorKind | None = None


class MetadataResult(CamelModel):
    """Outcome of recording a file's metadata"""

    status: Status
    content_hash: str = ""
    message: str = ""
    error: ErrorKind | None = None


class ListFilesResult(CamelModel):
    """Reconciled listing of stored files"""

    status: Status
    total_count: int = 0
    records: list[FileRecordPublic] = []
    message: str = ""
    error: ErrorKind | None = None


class DownloadUrlResult(CamelModel):
    """Signed download link for a stored file"""

    status: Status
    http_status_code: int
    message: str = ""
    url: str = ""
    error: ErrorKind | None = None


class MetadataCreate(CamelModel):
    """Request model for recording metadata of an already stored blob"""

    file_key: str
    file_hash: str

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )


class FileUploadResponse(CamelModel):
    """
    Response model for file upload.

    file_key is None when the blob was never stored. When the blob was stored
    but its metadata could not be written, file_key and file_hash are set and
    metadata_saved is False so the caller can retry POST /files/metadata.
    """

    status: Status
    file_key: str | None = None
    file_hash: str | None = None
    message: str = ""
    metadata_saved: bool = False
    error: ErrorKind | None = None
