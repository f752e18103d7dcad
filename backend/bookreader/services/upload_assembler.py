"""
Upload Assembler

Reassembles files that clients send as many independent chunk requests.

Pending transfers are keyed by (user id, filename). Each chunk lands in the
slot of its index, so arrival order does not matter. Filling a slot,
counting, and committing the finished file all happen under the transfer's
own lock, which makes the commit happen exactly once even when the final
chunk is delivered twice at the same time.

A committed transfer leaves a CompletedUpload record holding a digest of
every chunk. A late copy of one of those chunks is answered from the record
without a second write; any other chunk for the same name starts a new
transfer. Idle transfers and old records are evicted by sweep_expired().
"""

import asyncio
import hashlib
import logging
import os
import tempfile
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from ..models.library import Category
from ..models.upload import (
    ChunkAccepted,
    ChunkCompleted,
    ChunkResult,
    ChunkUploadRequest,
)
from .errors import (
    EntryExists,
    InvalidChunkIndex,
    UnknownCategory,
    UploadCommitError,
    UploadTooLarge,
)

logger = logging.getLogger(__name__)

UploadKey = tuple[str, str]


def chunk_digest(chunk: bytes) -> str:
    return hashlib.sha256(chunk).hexdigest()


@dataclass
class PendingUpload:
    """In-memory state of one chunked transfer."""

    user_id: str
    filename: str
    category: Category
    chunks: list[bytes | None]
    created_at: float
    last_chunk_at: float
    received_count: int = 0
    buffered_bytes: int = 0
    committed_path: Path | None = None
    evicted: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def total_chunks(self) -> int:
        return len(self.chunks)

    def to_dict(self, now: float) -> dict:
        """Convert state to dictionary for monitoring."""
        return {
            "user_id": self.user_id,
            "filename": self.filename,
            "category": self.category.value,
            "received_chunks": self.received_count,
            "total_chunks": self.total_chunks,
            "buffered_bytes": self.buffered_bytes,
            "idle_seconds": now - self.last_chunk_at,
        }


@dataclass(frozen=True)
class CompletedUpload:
    """Record of a committed transfer, used to recognise re-sent chunks."""

    path: Path
    chunk_digests: tuple[str, ...]
    completed_at: float

    def is_resent(self, request: ChunkUploadRequest, chunk: bytes) -> bool:
        return (
            request.total_chunks == len(self.chunk_digests)
            and 0 <= request.chunk_index < len(self.chunk_digests)
            and self.chunk_digests[request.chunk_index] == chunk_digest(chunk)
        )


def write_file_atomically(destination: Path, parts: Iterable[bytes]) -> None:
    """
    Write parts to a temporary file next to destination, then rename it
    into place so readers never observe a partially written file.
    """
    fd, temp_name = tempfile.mkstemp(
        dir=destination.parent, prefix=".upload-", suffix=".part"
    )
    try:
        with os.fdopen(fd, "wb") as temp_file:
            for part in parts:
                temp_file.write(part)
        os.replace(temp_name, destination)
    except BaseException:
        try:
            os.unlink(temp_name)
        except FileNotFoundError:
            pass
        raise


class UploadAssembler:
    """Thread-safe table of pending chunked uploads"""

    def __init__(
        self,
        user_books_dir: Path,
        conflict_policy: str = "overwrite",
        ttl_seconds: float = 1800,
        max_upload_bytes: int = 500 * 1024 * 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if conflict_policy not in ("overwrite", "reject"):
            raise ValueError(f"Unknown conflict policy: {conflict_policy}")

        self.user_books_dir = Path(user_books_dir)
        self.conflict_policy = conflict_policy
        self.ttl_seconds = ttl_seconds
        self.max_upload_bytes = max_upload_bytes
        self._clock = clock
        self._lock = threading.Lock()
        self._pending: dict[UploadKey, PendingUpload] = {}
        self._completed: dict[UploadKey, CompletedUpload] = {}

    @staticmethod
    def _check_index(chunk_index: int, total_chunks: int) -> None:
        if not 0 <= chunk_index < total_chunks:
            raise InvalidChunkIndex(
                f"Chunk index {chunk_index} is out of range for {total_chunks} chunks"
            )

    def _get_or_create(
        self, request: ChunkUploadRequest, chunk: bytes
    ) -> PendingUpload | ChunkCompleted:
        key = (request.user_id, request.filename)
        with self._lock:
            pending = self._pending.get(key)
            if pending is not None:
                return pending

            completed = self._completed.get(key)
            if completed is not None and completed.is_resent(request, chunk):
                logger.info(
                    f"Chunk {request.chunk_index} of completed upload {request.filename} "
                    f"re-sent by user {request.user_id}; not writing again"
                )
                return ChunkCompleted(path=completed.path)

            self._check_index(request.chunk_index, request.total_chunks)
            if request.category is None:
                raise UnknownCategory(
                    f"Unknown category for new upload of {request.filename}"
                )

            self._completed.pop(key, None)
            now = self._clock()
            pending = PendingUpload(
                user_id=request.user_id,
                filename=request.filename,
                category=request.category,
                chunks=[None] * request.total_chunks,
                created_at=now,
                last_chunk_at=now,
            )
            self._pending[key] = pending

        logger.info(
            f"Started chunked upload of {request.filename} for user {request.user_id} "
            f"({request.total_chunks} chunks, category {request.category.value})"
        )

        # Opportunistic cleanup of abandoned transfers (outside lock)
        self.sweep_expired()
        return pending

    def receive_chunk(
        self, request: ChunkUploadRequest, chunk: bytes
    ) -> ChunkResult:
        """
        Store one chunk and commit the file once every slot is filled.

        Args:
            request: Validated chunk metadata
            chunk: Chunk payload

        Returns:
            ChunkAccepted while chunks are missing, ChunkCompleted once the
            file has been written or when a chunk of the committed transfer
            is sent again

        Raises:
            InvalidChunkIndex: Index outside [0, total chunks); nothing is stored
            UnknownCategory: A new transfer without a valid category
            UploadTooLarge: The buffered chunks exceed max_upload_bytes; the
                transfer is dropped
            EntryExists: Destination exists and the policy is "reject"
            UploadCommitError: Writing failed; the transfer stays pending so
                resending the final chunk retries the commit
        """
        while True:
            pending = self._get_or_create(request, chunk)
            if isinstance(pending, ChunkCompleted):
                return pending

            with pending.lock:
                if pending.evicted:
                    # Swept between lookup and lock; start over with a fresh entry
                    continue

                if pending.committed_path is not None:
                    logger.info(
                        f"Duplicate chunk {request.chunk_index} for completed upload "
                        f"{request.filename}; not writing again"
                    )
                    return ChunkCompleted(path=pending.committed_path)

                self._check_index(request.chunk_index, pending.total_chunks)
                if request.total_chunks != pending.total_chunks:
                    logger.warning(
                        f"Chunk for {request.filename} declares {request.total_chunks} chunks, "
                        f"transfer was started with {pending.total_chunks}"
                    )

                previous = pending.chunks[request.chunk_index]
                buffered_bytes = pending.buffered_bytes + len(chunk)
                if previous is not None:
                    buffered_bytes -= len(previous)
                if buffered_bytes > self.max_upload_bytes:
                    self._evict(pending)
                    raise UploadTooLarge(
                        f"{request.filename} is too large. Maximum file size is "
                        f"{self.max_upload_bytes // (1024 * 1024)}MB."
                    )

                if previous is None:
                    pending.received_count += 1
                pending.chunks[request.chunk_index] = chunk
                pending.buffered_bytes = buffered_bytes
                pending.last_chunk_at = self._clock()

                if pending.received_count < pending.total_chunks:
                    return ChunkAccepted(
                        received=pending.received_count, total=pending.total_chunks
                    )

                path = self._commit(pending)
                pending.committed_path = path
                self._complete(pending)
                return ChunkCompleted(path=path)

    def _commit(self, pending: PendingUpload) -> Path:
        category_dir = self.user_books_dir / pending.user_id / pending.category.value
        destination = category_dir / pending.filename

        try:
            category_dir.mkdir(parents=True, exist_ok=True)
            if self.conflict_policy == "reject" and destination.exists():
                self._evict(pending)
                raise EntryExists(
                    f"{pending.filename} already exists in {pending.category.value}"
                )
            write_file_atomically(destination, pending.chunks)
        except OSError as e:
            logger.error(f"Failed to write assembled upload {destination}: {e}")
            raise UploadCommitError(f"Failed to save {pending.filename}: {e}") from e

        logger.info(
            f"Completed chunked upload {destination} ({pending.total_chunks} chunks)"
        )
        return destination

    def _complete(self, pending: PendingUpload) -> None:
        """Replace the pending entry with its completion record."""
        key = (pending.user_id, pending.filename)
        completed = CompletedUpload(
            path=pending.committed_path,
            chunk_digests=tuple(chunk_digest(chunk) for chunk in pending.chunks),
            completed_at=self._clock(),
        )
        pending.chunks = []
        with self._lock:
            if self._pending.get(key) is pending:
                del self._pending[key]
            self._completed[key] = completed

    def _evict(self, pending: PendingUpload) -> None:
        pending.evicted = True
        pending.chunks = []
        pending.buffered_bytes = 0
        key = (pending.user_id, pending.filename)
        with self._lock:
            if self._pending.get(key) is pending:
                del self._pending[key]

    def sweep_expired(self) -> int:
        """
        Evict transfers that have not received a chunk within the TTL, and
        completion records older than the TTL. Transfers currently processing
        a chunk are left alone.

        Returns:
            Number of transfers evicted
        """
        now = self._clock()
        evicted: list[UploadKey] = []

        with self._lock:
            for key, pending in list(self._pending.items()):
                if now - pending.last_chunk_at <= self.ttl_seconds:
                    continue
                if not pending.lock.acquire(blocking=False):
                    continue
                try:
                    pending.evicted = True
                    pending.chunks = []
                    del self._pending[key]
                    evicted.append(key)
                finally:
                    pending.lock.release()

            for key, completed in list(self._completed.items()):
                if now - completed.completed_at > self.ttl_seconds:
                    del self._completed[key]

        for user_id, filename in evicted:
            logger.info(f"Evicted abandoned upload of {filename} for user {user_id}")
        return len(evicted)

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def get_pending(self, user_id: str, filename: str) -> PendingUpload | None:
        with self._lock:
            return self._pending.get((user_id, filename))

    def get_completed(self, user_id: str, filename: str) -> CompletedUpload | None:
        with self._lock:
            return self._completed.get((user_id, filename))

    def get_pending_uploads(self) -> list[dict]:
        """Snapshot of all pending transfers (for debugging/monitoring)"""
        with self._lock:
            pending = list(self._pending.values())
        now = self._clock()
        return [upload.to_dict(now) for upload in pending]


async def sweep_periodically(assembler: UploadAssembler, interval: float) -> None:
    """Run sweep_expired every `interval` seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            assembler.sweep_expired()
        except Exception as e:
            logger.error(f"Upload sweep failed: {e}", exc_info=True)
