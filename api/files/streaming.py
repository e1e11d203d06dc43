"""
Streaming helpers for the Files API

HashingReader tees an upload source into a SHA-256 accumulator as it is read,
so the digest always covers exactly the bytes handed to the object store.
StreamDownload wraps an open blob stream for bounded-memory proxying.
"""

import hashlib
from dataclasses import dataclass, field
from typing import AsyncIterator, BinaryIO, Iterator

from starlette.concurrency import iterate_in_threadpool

from core.errors import ErrorKind
from core.logger import logger
from core.models import Status
from core.object_store import BlobStream


class HashingReader:
    """File-like wrapper hashing every byte returned by read(), in order"""

    def __init__(self, source: BinaryIO):
        self._source = source
        self._hash = hashlib.sha256()
        self.bytes_read = 0

    def read(self, size: int = -1) -> bytes:
        data = self._source.read(size)
        if data:
            self._hash.update(data)
            self.bytes_read += len(data)
        return data

    def read_part(self, part_size: int) -> bytes:
        """
        Read up to part_size bytes, accumulating short reads.

        Sources such as sockets or spooled request bodies may return fewer
        bytes than asked for before EOF; multipart uploads need every part but
        the last to be full-sized, so keep reading until the part is filled or
        the source is exhausted. Returns b"" at EOF.
        """
        chunks = []
        remaining = part_size
        while remaining > 0:
            data = self.read(remaining)
            if not data:
                break
            chunks.append(data)
            remaining -= len(data)
        return b"".join(chunks)

    def hexdigest(self) -> str:
        return self._hash.hexdigest()


@dataclass
class StreamDownload:
    """
    Result of opening a blob for proxied streaming.

    On success blob is set and iterating the instance yields chunks of at most
    chunk_size bytes; the blob is closed when iteration ends, fails, or the
    consumer calls close(). On failure blob is None and error says why.
    """

    status: Status
    key: str
    content_type: str | None = None
    content_length: int | None = None
    blob: BlobStream | None = None
    chunk_size: int = 80 * 1024
    message: str = ""
    error: ErrorKind | None = None
    _closed: bool = field(default=False, repr=False)

    def __iter__(self) -> Iterator[bytes]:
        if self.blob is None:
            return
        try:
            yield from self.blob.iter_chunks(self.chunk_size)
        except Exception as err:
            logger.error(f"Streaming '{self.key}' aborted: {err}")
            raise
        finally:
            self.close()

    async def __aiter__(self) -> AsyncIterator[bytes]:
        """
        Async form used by StreamingResponse.

        Blocking reads run in the threadpool. The blob is released in finally,
        so a client disconnect that stops the copy still closes it.
        """
        try:
            async for chunk in iterate_in_threadpool(iter(self)):
                yield chunk
        finally:
            self.close()

    def close(self) -> None:
        """Release the underlying stream; safe to call more than once"""
        if self._closed or self.blob is None:
            return
        self._closed = True
        self.blob.close()
