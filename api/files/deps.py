"""
Files dependencies for dependency injection

Field-level checks run here, before any store is contacted.
"""

import re
from typing import Annotated
from fastapi import Depends, HTTPException, Query, status

FILE_KEY_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}_.+"
)
HASH_CODE_PATTERN = re.compile(r"^[a-fA-F0-9]{64}$")


def get_validated_file_key(file_key: str) -> str:
    """
    Dependency that checks a file key has the <GUID>_filename form.

    Raises:
        HTTPException: 400 if the key is malformed
    """
    if not FILE_KEY_PATTERN.match(file_key):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid key format. Expected format: <GUID>_filename.txt",
        )
    return file_key


def validate_hash_code(hash_code: str | None) -> str | None:
    """
    Check an optional hash filter is 64 hex characters.

    Returns:
        The lowercased hash, or None when no filter was given

    Raises:
        HTTPException: 400 if the hash is malformed
    """
    if not hash_code:
        return None
    if not HASH_CODE_PATTERN.match(hash_code):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid hash code. Expected 64 hexadecimal characters.",
        )
    return hash_code.lower()


def get_validated_hash_code(
    hashCode: str | None = Query(  # pylint: disable=invalid-name
        default=None,
        description="Only list files whose SHA-256 equals this value",
    ),
) -> str | None:
    """Dependency wrapping validate_hash_code for the hashCode query parameter"""
    return validate_hash_code(hashCode)


FileKeyDep = Annotated[str, Depends(get_validated_file_key)]
HashCodeDep = Annotated[str | None, Depends(get_validated_hash_code)]
