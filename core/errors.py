"""
Error taxonomy shared by the store adapters and the file services
"""

from enum import Enum

from botocore.exceptions import BotoCoreError, ClientError


class ErrorKind(str, Enum):
    """Failure categories reported in service results"""

    VALIDATION = "ValidationError"
    NOT_FOUND = "NotFoundError"
    UPSTREAM = "UpstreamError"
    INTERNAL = "InternalError"


class FileStorageError(Exception):
    """Base class for failures raised by the storage layer"""

    kind = ErrorKind.INTERNAL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(FileStorageError):
    """Input violates a size or format constraint"""

    kind = ErrorKind.VALIDATION


class NotFoundError(FileStorageError):
    """Referenced key has no backing blob"""

    kind = ErrorKind.NOT_FOUND


class UpstreamError(FileStorageError):
    """Object store or metadata store call failed"""

    kind = ErrorKind.UPSTREAM


class InternalError(FileStorageError):
    """Unexpected failure inside the service"""

    kind = ErrorKind.INTERNAL


NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound", "ResourceNotFoundException"}


def is_not_found(exc: ClientError) -> bool:
    """Check whether a botocore ClientError signals a missing object"""
    response = getattr(exc, "response", {}) or {}
    status_code = (response.get("ResponseMetadata") or {}).get("HTTPStatusCode")
    error_code = str((response.get("Error") or {}).get("Code") or "")
    return status_code == 404 or error_code in NOT_FOUND_CODES


def translate_client_error(
    exc: Exception, operation: str, not_found_message: str | None = None
) -> FileStorageError:
    """
    Translate a boto3/botocore failure into a FileStorageError.

    Args:
        exc: The exception raised by the AWS client
        operation: Short description of the call, used in the message
        not_found_message: Message to use when the error is a 404;
            when None a 404 is reported as an upstream failure

    Returns:
        The matching FileStorageError subclass instance
    """
    if isinstance(exc, ClientError):
        if not_found_message is not None and is_not_found(exc):
            return NotFoundError(not_found_message)
        error = exc.response.get("Error", {})
        return UpstreamError(
            f"{operation} failed: {error.get('Code', 'Unknown')} "
            f"{error.get('Message', '')}".rstrip()
        )
    return UpstreamError(f"{operation} failed: {exc}")


# Errors the adapters translate; anything else surfaces as InternalError
AWS_ERRORS = (ClientError, BotoCoreError)
