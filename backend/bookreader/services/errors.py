"""
Library Error Types

Exceptions raised by the library services. Each carries the HTTP status
the routers answer with, so the mapping lives next to the error.
"""


class LibraryError(Exception):
    """Base class for all library service errors."""

    status_code: int = 500


class InvalidIdentifier(LibraryError):
    """The book id is not a well-formed encoded storage path."""

    status_code = 400


class UnknownCategory(LibraryError):
    """The category is not one of novels, manga, textbooks."""

    status_code = 400


class NotFound(LibraryError):
    """The resolved entry does not exist on disk."""

    status_code = 404


class MissingMetadata(LibraryError):
    """A chunk upload arrived without filename, chunk index or chunk count."""

    status_code = 400


class InvalidChunkIndex(LibraryError):
    """The chunk index is outside [0, totalChunks)."""

    status_code = 400


class UploadCommitError(LibraryError):
    """Writing an assembled upload to disk failed."""

    status_code = 500


class EntryExists(LibraryError):
    """The destination of an upload, rename, move or copy already exists."""

    status_code = 409


class InvalidFileType(LibraryError):
    """The uploaded file extension is not a supported book format."""

    status_code = 400


class UploadTooLarge(LibraryError):
    status_code = 413


class ReadOnlyEntry(LibraryError):
    """Shared-pool entries cannot be modified by users."""

    status_code = 403


class InvalidFilename(LibraryError):
    """A file or book name contains path separators or is empty."""

    status_code = 400
