"""
Configure generic models not specific
to a particular feature.
"""

from enum import Enum
from sqlmodel import SQLModel


class Status(str, Enum):
    """Outcome of a storage operation"""

    SUCCESS = "Success"
    ERROR = "Error"


class FileRecord(SQLModel):
    """
    Metadata kept for one uploaded file.

    key joins the metadata index to the object store; content_hash is the
    lowercase hex SHA-256 of the stored bytes; uploaded_at is the ISO-8601
    UTC time the metadata write was issued.
    """

    key: str
    content_hash: str
    uploaded_at: str
