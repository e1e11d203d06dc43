"""
Services for the Files API

Every function here takes the object store and/or metadata store adapters
and returns a result model. Store failures are caught at this boundary,
logged, and reported through the result's status, error and message.
"""

import re
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import PurePosixPath, PureWindowsPath
from typing import BinaryIO

from api.files.models import (
    DownloadUrlResult,
    FileRecordPublic,
    ListFilesResult,
    MetadataResult,
    UploadResult,
)
from api.files.streaming import HashingReader, StreamDownload
from core.config import get_settings
from core.errors import (
    ErrorKind,
    FileStorageError,
    NotFoundError,
    ValidationError,
)
from core.logger import logger
from core.metadata_store import MetadataStore
from core.models import FileRecord, Status
from core.object_store import ObjectStore

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._\- ]")


def sanitize_filename(filename: str | None) -> str:
    """Reduce a client-supplied filename to a safe object key suffix"""
    name = PureWindowsPath(PurePosixPath(filename or "").name).name
    name = _UNSAFE_FILENAME_CHARS.sub("_", name).strip()
    if name in ("", ".", ".."):
        return "file"
    return name


def generate_file_key(filename: str | None) -> str:
    """Build a unique key of the form <uuid4>_<sanitized filename>"""
    return f"{uuid.uuid4()}_{sanitize_filename(filename)}"


###############################################################################
# Upload
###############################################################################


def upload_file(
    object_store: ObjectStore,
    source: BinaryIO,
    content_type: str | None,
    filename: str | None,
    part_size: int | None = None,
    min_size: int | None = None,
    max_size: int | None = None,
) -> UploadResult:
    """
    Stream a file into the object store while computing its SHA-256.

    The source is read sequentially in parts of part_size bytes. Each part is
    hashed and then sent as the next multipart upload part, so the digest
    always matches the stored bytes. Parts are read ahead until min_size bytes
    are in hand before the store is contacted: a source smaller than min_size
    is rejected without any store call, whatever the part size.

    Args:
        object_store: Object store adapter
        source: Readable binary stream of unknown length
        content_type: MIME type stored with the blob
        filename: Original client filename
        part_size: Multipart part size (defaults to UPLOAD_PART_SIZE)
        min_size: Minimum accepted size (defaults to MIN_UPLOAD_SIZE)
        max_size: Maximum accepted size (defaults to MAX_UPLOAD_SIZE)

    Returns:
        UploadResult with the key and content hash on success
    """
    settings = get_settings()
    part_size = part_size or settings.UPLOAD_PART_SIZE
    min_size = settings.MIN_UPLOAD_SIZE if min_size is None else min_size
    max_size = max_size or settings.MAX_UPLOAD_SIZE
    content_type = content_type or "application/octet-stream"

    key = generate_file_key(filename)
    reader = HashingReader(source)

    try:
        # Hold parts back until the minimum size is reached or the source ends
        pending = []
        part = reader.read_part(part_size)
        while part:
            pending.append(part)
            if reader.bytes_read >= min_size:
                break
            part = reader.read_part(part_size)
        if not pending:
            raise ValidationError("The file is empty")
        if reader.bytes_read < min_size:
            raise ValidationError(
                f"Minimum allowed file size is {min_size // 1024} KB."
            )

        upload_id = object_store.initiate_streamed_write(key, content_type)
        logger.info(f"Started multipart upload {upload_id} for '{key}'")

        parts = []
        while pending:
            if reader.bytes_read > max_size:
                # Parts already sent stay behind as an incomplete upload
                raise ValidationError(
                    f"Maximum allowed file size is {max_size // (1024 * 1024)} MB."
                )
            parts.append(
                object_store.write_part(upload_id, key, len(parts) + 1, pending.pop(0))
            )
            if not pending:
                part = reader.read_part(part_size)
                if part:
                    pending.append(part)

        object_store.complete_write(upload_id, key, parts)
        content_hash = reader.hexdigest()
    except FileStorageError as err:
        logger.error(f"Error during file upload of '{key}': {err.message}")
        return UploadResult(status=Status.ERROR, message=err.message, error=err.kind)
    except Exception as err:  # pylint: disable=broad-exception-caught
        logger.error(f"Error during file upload of '{key}': {err}")
        return UploadResult(
            status=Status.ERROR,
            message=f"Upload failed: {err}",
            error=ErrorKind.INTERNAL,
        )

    logger.info(
        f"Uploaded '{key}' ({reader.bytes_read} bytes in {len(parts)} parts), "
        f"sha256={content_hash}"
    )
    return UploadResult(
        status=Status.SUCCESS,
        key=key,
        content_hash=content_hash,
        message="File upload completed successfully.",
    )


###############################################################################
# Metadata
###############################################################################


def record_metadata(
    metadata_store: MetadataStore, key: str, content_hash: str
) -> MetadataResult:
    """
    Write the FileRecord for a stored blob, stamped with the current UTC time.

    A failure leaves the blob without a discoverable record; it is reported,
    not retried.
    """
    record = FileRecord(
        key=key,
        content_hash=content_hash,
        uploaded_at=datetime.now(timezone.utc).isoformat(),
    )
    try:
        metadata_store.put(record)
    except FileStorageError as err:
        logger.error(f"Error saving metadata for '{key}': {err.message}")
        return MetadataResult(
            status=Status.ERROR,
            content_hash=content_hash,
            message=err.message,
            error=err.kind,
        )
    except Exception as err:  # pylint: disable=broad-exception-caught
        logger.error(f"Error saving metadata for '{key}': {err}")
        return MetadataResult(
            status=Status.ERROR,
            content_hash=content_hash,
            message=f"Saving metadata failed: {err}",
            error=ErrorKind.INTERNAL,
        )

    logger.info(f"Saved metadata for '{key}'")
    return MetadataResult(
        status=Status.SUCCESS,
        content_hash=content_hash,
        message="File Metadata saved successfully!!",
    )


###############################################################################
# Listing & reconciliation
###############################################################################


def scan_all(metadata_store: MetadataStore, page_size: int) -> list[FileRecord]:
    """Read every metadata record, following continuation tokens to the end"""
    records = []
    token = None
    while True:
        page = metadata_store.scan(page_size, token)
        records.extend(page.records)
        token = page.next_token
        if not token:
            break
    return records


def partition_by_existence(
    object_store: ObjectStore,
    records: list[FileRecord],
    max_workers: int = 1,
) -> tuple[list[FileRecord], list[FileRecord]]:
    """
    Split records into those whose blob exists and orphans.

    Existence checks run concurrently when max_workers > 1; both lists keep
    the input order either way.
    """
    if max_workers > 1 and len(records) > 1:
        with ThreadPoolExecutor(max_workers=min(max_workers, len(records))) as pool:
            found = list(pool.map(lambda r: object_store.exists(r.key), records))
    else:
        found = [object_store.exists(record.key) for record in records]

    valid, orphans = [], []
    for record, exists in zip(records, found):
        if exists:
            valid.append(record)
        else:
            orphans.append(record)
    return valid, orphans


def reconcile(
    object_store: ObjectStore,
    records: list[FileRecord],
    max_workers: int = 1,
) -> list[FileRecord]:
    """Keep only the records whose blob exists. Orphans are dropped, not deleted."""
    valid, orphans = partition_by_existence(object_store, records, max_workers)
    for record in orphans:
        logger.warning(
            f"File '{record.key}' has metadata but no blob in the object store. Skipping..."
        )
    return valid


def list_files(
    metadata_store: MetadataStore,
    object_store: ObjectStore,
    hash_code: str | None = None,
    page_size: int | None = None,
    max_workers: int | None = None,
) -> ListFilesResult:
    """
    List stored files, optionally only those with a given content hash.

    Without a filter the whole metadata table is scanned page by page; with
    one, the hash index is queried. Every candidate is then checked against
    the object store and orphans are excluded.

    Any store failure fails the whole listing: the result carries an error
    status and no records rather than a partial view.
    """
    settings = get_settings()
    page_size = page_size or settings.SCAN_PAGE_SIZE
    max_workers = max_workers or settings.RECONCILE_MAX_WORKERS

    try:
        if hash_code:
            candidates = metadata_store.query_by_hash(hash_code)
        else:
            candidates = scan_all(metadata_store, page_size)
        valid = reconcile(object_store, candidates, max_workers=max_workers)
    except FileStorageError as err:
        logger.error(f"Error listing files: {err.message}")
        return ListFilesResult(status=Status.ERROR, message=err.message, error=err.kind)
    except Exception as err:  # pylint: disable=broad-exception-caught
        logger.error(f"Error listing files: {err}")
        return ListFilesResult(
            status=Status.ERROR,
            message=f"Internal server error: {err}",
            error=ErrorKind.INTERNAL,
        )

    logger.debug(f"Listed {len(valid)} of {len(candidates)} metadata records")
    return ListFilesResult(
        status=Status.SUCCESS,
        total_count=len(valid),
        records=[FileRecordPublic.from_record(record) for record in valid],
    )


###############################################################################
# Downloads
###############################################################################


def issue_download_url(
    object_store: ObjectStore, key: str, expiry_minutes: int | None = None
) -> DownloadUrlResult:
    """
    Return a pre-signed GET URL for key that forces an attachment download.

    The signing API is not contacted when the blob does not exist.
    """
    expiry_minutes = expiry_minutes or get_settings().DOWNLOAD_URL_EXPIRY_MINUTES
    try:
        if not object_store.exists(key):
            logger.info(f"Download requested for missing file '{key}'")
            return DownloadUrlResult(
                status=Status.ERROR,
                http_status_code=404,
                message="File does not exist.",
                error=ErrorKind.NOT_FOUND,
            )
        url = object_store.sign_url(
            key,
            method="GET",
            expires_in=expiry_minutes * 60,
            content_disposition=f"attachment; filename={key}",
        )
    except FileStorageError as err:
        logger.error(f"Error issuing download URL for '{key}': {err.message}")
        return DownloadUrlResult(
            status=Status.ERROR,
            http_status_code=502 if err.kind == ErrorKind.UPSTREAM else 500,
            message=err.message,
            error=err.kind,
        )
    except Exception as err:  # pylint: disable=broad-exception-caught
        logger.error(f"Error issuing download URL for '{key}': {err}")
        return DownloadUrlResult(
            status=Status.ERROR,
            http_status_code=500,
            message=str(err),
            error=ErrorKind.INTERNAL,
        )

    return DownloadUrlResult(
        status=Status.SUCCESS,
        http_status_code=200,
        message="File Downloaded Successfully",
        url=url,
    )


def stream_download(
    object_store: ObjectStore, key: str, chunk_size: int | None = None
) -> StreamDownload:
    """
    Open key for proxied streaming.

    On success the returned StreamDownload carries the blob's content type
    and length and yields chunks of chunk_size bytes (defaults to
    STREAM_CHUNK_SIZE). A missing blob yields a NotFoundError result; any
    other failure an UpstreamError or InternalError result.
    """
    chunk_size = chunk_size or get_settings().STREAM_CHUNK_SIZE
    try:
        blob = object_store.open_read_stream(key)
    except NotFoundError as err:
        logger.info(f"Stream requested for missing file '{key}'")
        return StreamDownload(
            status=Status.ERROR, key=key, message=err.message, error=err.kind
        )
    except FileStorageError as err:
        logger.error(f"Error opening stream for '{key}': {err.message}")
        return StreamDownload(
            status=Status.ERROR, key=key, message=err.message, error=err.kind
        )
    except Exception as err:  # pylint: disable=broad-exception-caught
        logger.error(f"Error opening stream for '{key}': {err}")
        return StreamDownload(
            status=Status.ERROR,
            key=key,
            message=f"Opening stream failed: {err}",
            error=ErrorKind.INTERNAL,
        )

    return StreamDownload(
        status=Status.SUCCESS,
        key=key,
        content_type=blob.content_type,
        content_length=blob.content_length,
        blob=blob,
        chunk_size=chunk_size,
    )
