"""
Library Scanner

Walks a user's private category directories and the shared pool and turns
what it finds into LibraryEntry records.

A directory that directly contains raster images is a manga leaf: it becomes
one entry and is not descended into. Any other directory is a container and
is scanned recursively without producing an entry of its own.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from ..models.library import (
    IMAGE_EXTENSIONS,
    SUPPORTED_EXTENSIONS,
    BookType,
    Category,
    LibraryEntry,
    Namespace,
)
from .path_codec import PathCodec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeafDirectory:
    """Directory with page images; listed as a single manga entry."""

    images: list[str]


@dataclass(frozen=True)
class ContainerDirectory:
    """Directory without images; its children are scanned instead."""

    children: list[str]


DirectoryKind = LeafDirectory | ContainerDirectory


def is_image_file(name: str) -> bool:
    return Path(name).suffix.lower() in IMAGE_EXTENSIONS


def classify_directory(path: Path) -> DirectoryKind:
    """
    Classify a directory by its immediate children only.

    Raises:
        OSError: If the directory cannot be listed
    """
    children = [child.name for child in path.iterdir()]
    images = [name for name in children if is_image_file(name)]
    if images:
        return LeafDirectory(images=images)
    return ContainerDirectory(children=children)


class LibraryScanner:
    """Builds the flat list of library entries visible to a user"""

    def __init__(self, user_books_dir: Path, shared_books_dir: Path) -> None:
        self.user_books_dir = Path(user_books_dir)
        self.shared_books_dir = Path(shared_books_dir)

    def namespace_root(self, namespace: Namespace, user_id: str) -> Path:
        """Directory holding the category folders of a namespace."""
        if namespace == Namespace.SHARED:
            return self.shared_books_dir
        return self.user_books_dir / user_id

    def category_dir(
        self, namespace: Namespace, user_id: str, category: Category
    ) -> Path:
        folder = PathCodec.category_folder(namespace, category)
        return self.namespace_root(namespace, user_id) / folder

    def scan(self, user_id: str) -> list[LibraryEntry]:
        """
        List everything a user can see.

        For each category in fixed order, the user's private entries come
        first, followed by the shared pool's entries, each in filesystem
        listing order.
        """
        start_time = datetime.now()
        entries: list[LibraryEntry] = []

        for category in Category:
            for namespace in (Namespace.PRIVATE, Namespace.SHARED):
                entries.extend(
                    self._scan_directory(
                        self.category_dir(namespace, user_id, category),
                        namespace,
                        category,
                        "",
                    )
                )

        elapsed_time = (datetime.now() - start_time).total_seconds()
        logger.info(
            f"Scanned library for user {user_id}: {len(entries)} entries in {elapsed_time:.3f}s"
        )
        return entries

    def scan_private(self, user_id: str) -> list[LibraryEntry]:
        """List only the private entries of a user."""
        entries: list[LibraryEntry] = []
        for category in Category:
            entries.extend(
                self._scan_directory(
                    self.category_dir(Namespace.PRIVATE, user_id, category),
                    Namespace.PRIVATE,
                    category,
                    "",
                )
            )
        return entries

    def _scan_directory(
        self,
        category_dir: Path,
        namespace: Namespace,
        category: Category,
        relative_subpath: str,
    ) -> list[LibraryEntry]:
        directory = category_dir / relative_subpath if relative_subpath else category_dir

        try:
            children = list(directory.iterdir())
        except FileNotFoundError:
            # Category folders are created lazily
            return []
        except OSError as e:
            logger.warning(f"Skipping unreadable directory {directory}: {e}")
            return []

        entries: list[LibraryEntry] = []
        for child in children:
            relative_path = (
                f"{relative_subpath}/{child.name}" if relative_subpath else child.name
            )
            try:
                stat = child.stat()
                if child.is_file():
                    extension = child.suffix.lower()
                    if extension in SUPPORTED_EXTENSIONS:
                        entries.append(
                            self._make_entry(
                                namespace,
                                category,
                                relative_path,
                                BookType(extension[1:]),
                                stat,
                                is_directory=False,
                            )
                        )
                elif child.is_dir():
                    kind = classify_directory(child)
                    if isinstance(kind, LeafDirectory):
                        entries.append(
                            self._make_entry(
                                namespace,
                                category,
                                relative_path,
                                BookType.MANGA,
                                stat,
                                is_directory=True,
                            )
                        )
                    else:
                        entries.extend(
                            self._scan_directory(
                                category_dir, namespace, category, relative_path
                            )
                        )
            except OSError as e:
                logger.warning(f"Skipping {child}: {e}")
            except UnicodeEncodeError:
                logger.warning(f"Skipping {child!r}: name is not valid UTF-8")

        return entries

    def _make_entry(
        self,
        namespace: Namespace,
        category: Category,
        relative_path: str,
        book_type: BookType,
        stat,
        is_directory: bool,
    ) -> LibraryEntry:
        return LibraryEntry(
            id=PathCodec.encode(namespace, category, relative_path),
            name=relative_path.rsplit("/", 1)[-1],
            type=book_type,
            path=f"{category.value}/{relative_path}",
            category=category,
            is_directory=is_directory,
            is_shared=namespace == Namespace.SHARED,
            size=stat.st_size,
            modified=datetime.fromtimestamp(stat.st_mtime).isoformat(),
        )
