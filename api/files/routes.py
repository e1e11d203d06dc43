"""
Routes/endpoints for the Files API

HTTP   URI                                  Action
----   ---                                  ------
POST   /api/v1/files/upload                 Upload a file and record its metadata
POST   /api/v1/files/metadata               Record metadata for an uploaded blob
GET    /api/v1/files/listfiles              List stored files (optionally by hash)
GET    /api/v1/files/download/[file_key]    Issue a signed download URL
GET    /api/v1/files/stream/[file_key]      Stream a file through the API
"""

from fastapi import APIRouter, File, HTTPException, UploadFile, status
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel
from starlette.background import BackgroundTask

from api.files.deps import (
    FileKeyDep,
    HashCodeDep,
    get_validated_file_key,
    validate_hash_code,
)
from api.files.models import (
    DownloadUrlResult,
    FileUploadResponse,
    ListFilesResult,
    MetadataCreate,
    MetadataResult,
)
from api.files import services
from core.config import get_settings
from core.deps import MetadataStoreDep, ObjectStoreDep
from core.errors import ErrorKind
from core.models import Status

router = APIRouter(prefix="/files", tags=["File Endpoints"])

ERROR_STATUS_CODES = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.UPSTREAM: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _error_response(result: BaseModel, kind: ErrorKind | None) -> JSONResponse:
    return JSONResponse(
        status_code=ERROR_STATUS_CODES.get(kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        content=result.model_dump(mode="json", by_alias=True),
    )


def _check_upload_size(file: UploadFile) -> None:
    settings = get_settings()
    if file.size is None:
        return
    if file.size == 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="The file is empty"
        )
    if file.size < settings.MIN_UPLOAD_SIZE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Minimum allowed file size is {settings.MIN_UPLOAD_SIZE // 1024} KB.",
        )
    if file.size > settings.MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=(
                "Maximum allowed file size is "
                f"{settings.MAX_UPLOAD_SIZE // (1024 * 1024)} MB."
            ),
        )


@router.post(
    "/upload",
    response_model=FileUploadResponse,
    tags=["File Endpoints"],
    status_code=status.HTTP_201_CREATED,
)
def upload_file(
    object_store: ObjectStoreDep,
    metadata_store: MetadataStoreDep,
    file: UploadFile = File(..., description="File content to store"),
) -> FileUploadResponse:
    """
    Upload a file to the object store and record its SHA-256 in the
    metadata index.

    The blob and its metadata are written in two independent steps. If the
    metadata write fails, the response still carries fileKey and fileHash
    with metadataSaved=false so the caller can retry POST /files/metadata.
    """
    _check_upload_size(file)

    upload = services.upload_file(
        object_store,
        source=file.file,
        content_type=file.content_type,
        filename=file.filename,
    )
    if upload.status != Status.SUCCESS:
        response = FileUploadResponse(
            status=Status.ERROR, message=upload.message, error=upload.error
        )
        return _error_response(response, upload.error)

    metadata = services.record_metadata(
        metadata_store, upload.key, upload.content_hash
    )
    response = FileUploadResponse(
        status=metadata.status,
        file_key=upload.key,
        file_hash=upload.content_hash,
        message=metadata.message,
        metadata_saved=metadata.status == Status.SUCCESS,
        error=metadata.error,
    )
    if metadata.status != Status.SUCCESS:
        return _error_response(response, metadata.error)
    return response


@router.post(
    "/metadata",
    response_model=MetadataResult,
    tags=["File Endpoints"],
    status_code=status.HTTP_201_CREATED,
)
def record_metadata(
    metadata_store: MetadataStoreDep,
    metadata_in: MetadataCreate,
) -> MetadataResult:
    """
    Record the metadata of a blob that was uploaded but whose metadata
    write failed.
    """
    file_key = get_validated_file_key(metadata_in.file_key)
    file_hash = validate_hash_code(metadata_in.file_hash)
    if file_hash is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="fileHash is required"
        )
    result = services.record_metadata(metadata_store, file_key, file_hash)
    if result.status != Status.SUCCESS:
        return _error_response(result, result.error)
    return result


@router.get("/listfiles", response_model=ListFilesResult, tags=["File Endpoints"])
def list_files(
    metadata_store: MetadataStoreDep,
    object_store: ObjectStoreDep,
    hash_code: HashCodeDep,
) -> ListFilesResult:
    """
    List stored files, optionally filtered by SHA-256.

    Metadata records whose blob no longer exists are left out of the result.
    """
    result = services.list_files(metadata_store, object_store, hash_code=hash_code)
    if result.status != Status.SUCCESS:
        return _error_response(result, result.error)
    return result


@router.get(
    "/download/{file_key}", response_model=DownloadUrlResult, tags=["File Endpoints"]
)
def download_file(
    object_store: ObjectStoreDep,
    file_key: FileKeyDep,
) -> DownloadUrlResult:
    """
    Issue a time-limited signed URL that downloads the file directly from
    the object store.
    """
    result = services.issue_download_url(object_store, file_key)
    if result.status != Status.SUCCESS:
        return JSONResponse(
            status_code=result.http_status_code,
            content=result.model_dump(mode="json", by_alias=True),
        )
    return result


@router.get("/stream/{file_key}", tags=["File Endpoints"])
def stream_file(
    object_store: ObjectStoreDep,
    file_key: FileKeyDep,
) -> StreamingResponse:
    """
    Stream a file through the API in bounded chunks.

    Returns the file with its stored content type and length, as an
    attachment, with proxy buffering disabled.
    """
    download = services.stream_download(object_store, file_key)
    if download.status != Status.SUCCESS:
        raise HTTPException(
            status_code=ERROR_STATUS_CODES.get(
                download.error, status.HTTP_500_INTERNAL_SERVER_ERROR
            ),
            detail=download.message,
        )

    headers = {
        "Content-Disposition": f'attachment; filename="{file_key}"',
        "X-Accel-Buffering": "no",
        "Cache-Control": "no-store",
    }
    if download.content_length is not None:
        headers["Content-Length"] = str(download.content_length)

    return StreamingResponse(
        download,
        media_type=download.content_type,
        headers=headers,
        background=BackgroundTask(download.close),
    )
