import logging
from typing import Annotated

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from pydantic import ValidationError

from ..models.upload import (
    ChunkAccepted,
    ChunkUploadRequest,
    ChunkUploadResponse,
    FailedFileInfo,
    UploadedFileInfo,
    UploadResponse,
)
from ..services.errors import LibraryError, MissingMetadata, UnknownCategory
from ..services.path_codec import PathCodec
from .dependencies import (
    CurrentUser,
    LibraryServiceDep,
    SettingsDep,
    UploadAssemblerDep,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["uploads"])


@router.post("/upload", response_model=UploadResponse)
def upload_books(
    user_id: CurrentUser,
    library: LibraryServiceDep,
    settings: SettingsDep,
    books: Annotated[list[UploadFile], File()],
    category: Annotated[str, Form()] = "novels",
) -> UploadResponse:
    """
    Upload one or more books in a single request. Files are stored
    independently, so some may succeed while others fail.
    """
    if not books:
        raise HTTPException(status_code=400, detail="No files uploaded")
    if len(books) > settings.max_files_per_upload:
        raise HTTPException(
            status_code=400,
            detail=f"Too many files. At most {settings.max_files_per_upload} files per upload.",
        )

    try:
        target_category = PathCodec.parse_category(category)
    except LibraryError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    stored: list[UploadedFileInfo] = []
    failed: list[FailedFileInfo] = []
    for book in books:
        filename = book.filename or ""
        try:
            path = library.store_upload(user_id, target_category, filename, book.file)
            stored.append(UploadedFileInfo(name=filename, size=path.stat().st_size))
        except LibraryError as e:
            logger.warning(f"Upload of {filename} for user {user_id} failed: {e}")
            failed.append(FailedFileInfo(name=filename, error=str(e)))

    return UploadResponse(
        success=not failed,
        message=f"Successfully uploaded {len(stored)} of {len(books)} file(s)",
        files=stored,
        errors=failed,
    )


@router.post("/upload-chunk", response_model=ChunkUploadResponse)
def upload_chunk(
    user_id: CurrentUser,
    assembler: UploadAssemblerDep,
    chunk: Annotated[UploadFile | None, File()] = None,
    filename: Annotated[str | None, Form()] = None,
    chunk_index: Annotated[str | None, Form(alias="chunkIndex")] = None,
    total_chunks: Annotated[str | None, Form(alias="totalChunks")] = None,
    category: Annotated[str | None, Form()] = None,
) -> ChunkUploadResponse:
    """
    Receive one chunk of a large file. The file is written to the library
    once its last missing chunk arrives.
    """
    try:
        if chunk is None or not filename or chunk_index is None or total_chunks is None:
            raise MissingMetadata("Missing chunk information")

        try:
            chunk_category = PathCodec.parse_category(category or "novels")
        except UnknownCategory:
            # Rejected by the assembler only if this chunk starts a transfer
            chunk_category = None

        try:
            request = ChunkUploadRequest(
                user_id=user_id,
                filename=filename,
                chunk_index=chunk_index,
                total_chunks=total_chunks,
                category=chunk_category,
            )
        except ValidationError as e:
            raise HTTPException(
                status_code=400, detail=f"Invalid chunk information: {e.errors()[0]['msg']}"
            )

        result = assembler.receive_chunk(request, chunk.file.read())
    except HTTPException:
        raise
    except LibraryError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        logger.error(f"Error uploading chunk: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to upload chunk: {str(e)}")

    if isinstance(result, ChunkAccepted):
        return ChunkUploadResponse(
            success=True,
            message=f"Chunk {request.chunk_index + 1}/{result.total} received",
            chunks_received=result.received,
            total_chunks=result.total,
        )
    return ChunkUploadResponse(
        success=True,
        message="File uploaded successfully",
        filename=result.path.name,
    )
