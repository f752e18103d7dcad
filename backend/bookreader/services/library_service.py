"""
Library Service Module

Everything a request can do to a user's library besides chunked uploads:
listing, resolving ids to files, page lists of manga folders, direct
uploads, and rename/move/copy/delete of private entries. Shared-pool
entries can be read but never modified.
"""

import logging
import re
import shutil
from collections.abc import Iterator
from pathlib import Path
from typing import BinaryIO

from ..models.library import (
    IMAGE_EXTENSIONS,
    SUPPORTED_EXTENSIONS,
    Category,
    LibraryEntry,
    Namespace,
    PageInfo,
    PagesResponse,
)
from ..models.upload import validate_plain_filename
from .cover_settings_store import CoverSettingsStore
from .errors import (
    EntryExists,
    InvalidFileType,
    InvalidFilename,
    NotFound,
    ReadOnlyEntry,
    UploadCommitError,
    UploadTooLarge,
)
from .library_scanner import LibraryScanner
from .path_codec import DecodedId, PathCodec
from .upload_assembler import write_file_atomically

logger = logging.getLogger(__name__)

COPY_BLOCK_SIZE = 1024 * 1024


def natural_sort_key(name: str) -> list:
    """Sort key ordering "page2" before "page10", ignoring case."""
    return [
        int(part) if part.isdigit() else part.casefold()
        for part in re.split(r"(\d+)", name)
    ]


def check_filename(name: str) -> str:
    try:
        return validate_plain_filename(name)
    except ValueError as e:
        raise InvalidFilename(str(e))


class LibraryService:
    def __init__(
        self,
        scanner: LibraryScanner,
        cover_settings: CoverSettingsStore,
        max_upload_bytes: int = 500 * 1024 * 1024,
        conflict_policy: str = "overwrite",
    ) -> None:
        self.scanner = scanner
        self.cover_settings = cover_settings
        self.max_upload_bytes = max_upload_bytes
        self.conflict_policy = conflict_policy

    def ensure_storage(self) -> None:
        """Create the user root and the shared pool's category folders."""
        self.scanner.user_books_dir.mkdir(parents=True, exist_ok=True)
        for category in Category:
            self.scanner.category_dir(Namespace.SHARED, "", category).mkdir(
                parents=True, exist_ok=True
            )

    # ============================================
    # Listing and lookup
    # ============================================

    def list_library(self, user_id: str) -> list[LibraryEntry]:
        """List the user's private entries and the shared pool."""
        for category in Category:
            self.scanner.category_dir(Namespace.PRIVATE, user_id, category).mkdir(
                parents=True, exist_ok=True
            )
        return self.scanner.scan(user_id)

    def list_user_books(self, owner_id: str) -> list[LibraryEntry]:
        """List another user's private entries for browsing."""
        return self.scanner.scan_private(owner_id)

    def entry_path(self, user_id: str, decoded: DecodedId) -> Path:
        category_dir = self.scanner.category_dir(
            decoded.namespace, user_id, decoded.category
        )
        return category_dir / decoded.relative_path

    def resolve(self, user_id: str, book_id: str) -> Path:
        """
        Resolve a book id to its path on disk.

        Raises:
            InvalidIdentifier / UnknownCategory: Malformed id
            NotFound: Nothing exists at the resolved path
        """
        return self._existing(self.entry_path(user_id, PathCodec.decode(book_id)))

    def resolve_storage_path(self, user_id: str, storage_path: str) -> Path:
        """Resolve a plain "[shared/]category/relative" path, e.g. a page image."""
        decoded = PathCodec.split_storage_path(storage_path)
        return self._existing(self.entry_path(user_id, decoded))

    @staticmethod
    def _existing(path: Path) -> Path:
        if not path.exists():
            raise NotFound(f"{path.name} not found")
        return path

    def get_pages(self, user_id: str, book_id: str) -> PagesResponse:
        """
        List the page images of a manga folder in natural order.

        Files (PDF, EPUB, ...) are paged by the reader itself and report no pages.
        """
        path = self.resolve(user_id, book_id)
        if not path.is_dir():
            return PagesResponse(
                total_pages=0,
                pages=[],
                message="Pages of PDF/EPUB files are rendered by the reader",
            )

        storage_path = PathCodec.decode_to_storage_path(book_id)
        images = sorted(
            (
                child.name
                for child in path.iterdir()
                if child.suffix.lower() in IMAGE_EXTENSIONS
            ),
            key=natural_sort_key,
        )
        pages = [
            PageInfo(
                page_number=index + 1,
                filename=name,
                path=f"{storage_path}/{name}",
            )
            for index, name in enumerate(images)
        ]
        return PagesResponse(total_pages=len(pages), pages=pages)

    # ============================================
    # Direct uploads
    # ============================================

    def _read_limited(self, source: BinaryIO, filename: str) -> Iterator[bytes]:
        written = 0
        while block := source.read(COPY_BLOCK_SIZE):
            written += len(block)
            if written > self.max_upload_bytes:
                raise UploadTooLarge(
                    f"{filename} is too large. Maximum file size is "
                    f"{self.max_upload_bytes // (1024 * 1024)}MB."
                )
            yield block

    def store_upload(
        self, user_id: str, category: Category, filename: str, source: BinaryIO
    ) -> Path:
        """
        Store a file uploaded in a single request.

        Returns:
            Path of the stored file

        Raises:
            InvalidFilename / InvalidFileType: Rejected before anything is written
            EntryExists: Destination exists and the conflict policy is "reject"
            UploadTooLarge: More than max_upload_bytes were sent
            UploadCommitError: The file could not be written
        """
        check_filename(filename)
        if Path(filename).suffix.lower() not in SUPPORTED_EXTENSIONS:
            raise InvalidFileType(
                "Invalid file type. Only PDF, EPUB, CBZ, CBR, and MOBI files are allowed."
            )

        category_dir = self.scanner.category_dir(Namespace.PRIVATE, user_id, category)
        destination = category_dir / filename
        if self.conflict_policy == "reject" and destination.exists():
            raise EntryExists(f"{filename} already exists in {category.value}")

        try:
            category_dir.mkdir(parents=True, exist_ok=True)
            write_file_atomically(destination, self._read_limited(source, filename))
        except OSError as e:
            logger.error(f"Failed to store upload {destination}: {e}")
            raise UploadCommitError(f"Failed to save {filename}: {e}") from e

        logger.info(f"Stored upload {destination}")
        return destination

    # ============================================
    # Mutations of private entries
    # ============================================

    @staticmethod
    def _require_private(decoded: DecodedId) -> None:
        if decoded.is_shared:
            raise ReadOnlyEntry("Shared books cannot be modified")

    def _move_cover_setting(self, user_id: str, old_id: str, new_id: str) -> None:
        page_number = self.cover_settings.get(user_id, old_id)
        if self.cover_settings.clear(user_id, old_id):
            self.cover_settings.set(user_id, new_id, page_number)

    def rename(self, user_id: str, book_id: str, new_name: str) -> tuple[str, str]:
        """
        Rename an entry in place. Files keep their extension when the new
        name omits it.

        Returns:
            (new book id, final name)
        """
        decoded = PathCodec.decode(book_id)
        self._require_private(decoded)
        old_path = self._existing(self.entry_path(user_id, decoded))

        final_name = new_name.strip()
        if not final_name:
            raise InvalidFilename("New name is required")
        if not old_path.is_dir() and not final_name.endswith(old_path.suffix):
            final_name += old_path.suffix
        check_filename(final_name)

        new_path = old_path.with_name(final_name)
        if new_path.exists():
            raise EntryExists("A book with this name already exists")

        old_path.rename(new_path)

        parent, _, _ = decoded.relative_path.rpartition("/")
        new_relative = f"{parent}/{final_name}" if parent else final_name
        new_id = PathCodec.encode(Namespace.PRIVATE, decoded.category, new_relative)
        self._move_cover_setting(user_id, book_id, new_id)

        logger.info(f"Renamed {old_path} to {new_path}")
        return new_id, final_name

    def change_category(self, user_id: str, book_id: str, category: Category) -> str:
        """
        Move an entry to the top level of another category.

        Returns:
            New book id
        """
        decoded = PathCodec.decode(book_id)
        self._require_private(decoded)
        old_path = self._existing(self.entry_path(user_id, decoded))

        category_dir = self.scanner.category_dir(Namespace.PRIVATE, user_id, category)
        new_path = category_dir / old_path.name
        if new_path.exists():
            raise EntryExists(
                "A book with this name already exists in the target category"
            )

        category_dir.mkdir(parents=True, exist_ok=True)
        old_path.rename(new_path)

        new_id = PathCodec.encode(Namespace.PRIVATE, category, old_path.name)
        self._move_cover_setting(user_id, book_id, new_id)

        logger.info(f"Moved {old_path} to category {category.value}")
        return new_id

    def copy_from_user(self, user_id: str, source_user_id: str, book_id: str) -> str:
        """
        Copy another user's private entry to the same place in the caller's
        library.

        Returns:
            Book id of the copy
        """
        decoded = PathCodec.decode(book_id)
        self._require_private(decoded)
        source_path = self._existing(self.entry_path(source_user_id, decoded))
        destination = self.entry_path(user_id, decoded)

        if destination.exists():
            raise EntryExists("You already have this book in your library")

        destination.parent.mkdir(parents=True, exist_ok=True)
        if source_path.is_dir():
            shutil.copytree(source_path, destination)
        else:
            shutil.copy2(source_path, destination)

        logger.info(f"Copied {source_path} to {destination}")
        return book_id

    def delete(self, user_id: str, book_id: str) -> None:
        """Delete a file or manga folder and forget its cover setting."""
        decoded = PathCodec.decode(book_id)
        self._require_private(decoded)
        path = self._existing(self.entry_path(user_id, decoded))

        if path.is_dir():
            shutil.rmtree(path)
        else:
            path.unlink()

        self.cover_settings.clear(user_id, book_id)
        logger.info(f"Deleted {path}")
