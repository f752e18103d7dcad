"""
Upload Type Definitions

Request and result types for direct and chunked uploads. Chunk metadata
arrives as loosely typed multipart form fields and is validated into a
ChunkUploadRequest once, at the router, before it reaches the assembler.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field

from .library import CamelModel, Category

MAX_TOTAL_CHUNKS = 10_000


def validate_plain_filename(value: str) -> str:
    """Reject names that would escape the target directory."""
    if value in (".", "..") or "/" in value or "\\" in value or "\x00" in value:
        raise ValueError(f"Invalid filename: {value!r}")
    return value


class ChunkUploadRequest(BaseModel):
    """Validated metadata of one chunk of a chunked upload"""

    user_id: str = Field(min_length=1)
    filename: Annotated[
        str, Field(min_length=1), AfterValidator(validate_plain_filename)
    ]
    chunk_index: int = Field(ge=0)
    total_chunks: int = Field(ge=1, le=MAX_TOTAL_CHUNKS)
    # None when the client sent an unknown category; only a new transfer needs one
    category: Category | None = Category.NOVELS


@dataclass(frozen=True)
class ChunkAccepted:
    """Chunk stored; the transfer is still waiting for more chunks."""

    received: int
    total: int


@dataclass(frozen=True)
class ChunkCompleted:
    """All chunks arrived and the assembled file was written to `path`."""

    path: Path


ChunkResult = ChunkAccepted | ChunkCompleted


# ============================================
# API Responses
# ============================================


class ChunkUploadResponse(CamelModel):
    success: bool
    message: str
    chunks_received: int | None = None
    total_chunks: int | None = None
    filename: str | None = None


class UploadedFileInfo(CamelModel):
    name: str
    size: int


class FailedFileInfo(CamelModel):
    name: str
    error: str


class UploadResponse(CamelModel):
    """Result of a direct multi-file upload; files may fail individually"""

    success: bool
    message: str
    files: list[UploadedFileInfo]
    errors: list[FailedFileInfo] = Field(default_factory=list)
