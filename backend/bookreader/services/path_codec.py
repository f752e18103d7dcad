"""
Path Codec

Maps library entries to opaque external ids and back.

An id is the standard base64 encoding of the UTF-8 storage path
"{prefix}{category}/{relative path}", where the prefix is "shared/" for the
shared pool and empty for a user's private storage. The category segment is
always the lowercase canonical name; the capitalized folder names used on
disk by the shared pool are translated by the casing table below.
"""

import base64
import binascii
from dataclasses import dataclass

from ..models.library import Category, Namespace
from .errors import InvalidIdentifier, UnknownCategory

SHARED_PREFIX = "shared/"

# On-disk category folder per namespace
CATEGORY_FOLDERS: dict[Namespace, dict[Category, str]] = {
    Namespace.PRIVATE: {category: category.value for category in Category},
    Namespace.SHARED: {
        Category.NOVELS: "Novels",
        Category.MANGA: "Manga",
        Category.TEXTBOOKS: "Textbooks",
    },
}

_FOLDER_CATEGORIES: dict[Namespace, dict[str, Category]] = {
    namespace: {folder: category for category, folder in folders.items()}
    for namespace, folders in CATEGORY_FOLDERS.items()
}


@dataclass(frozen=True)
class DecodedId:
    """The parts an external id encodes"""

    namespace: Namespace
    category: Category
    relative_path: str

    @property
    def is_shared(self) -> bool:
        return self.namespace == Namespace.SHARED


class PathCodec:
    """Encoding and decoding of library entry ids and storage paths"""

    @staticmethod
    def parse_category(value: str) -> Category:
        """
        Parse a canonical (lowercase) category name.

        Raises:
            UnknownCategory: If the value is not one of the fixed categories
        """
        try:
            return Category(value)
        except ValueError:
            raise UnknownCategory(f"Unknown category: {value!r}")

    @staticmethod
    def category_folder(namespace: Namespace, category: Category) -> str:
        """Folder name a category is stored under in the given namespace."""
        return CATEGORY_FOLDERS[namespace][category]

    @staticmethod
    def category_from_folder(namespace: Namespace, folder: str) -> Category:
        """
        Inverse of category_folder.

        Raises:
            UnknownCategory: If the folder is not a category folder of the namespace
        """
        try:
            return _FOLDER_CATEGORIES[namespace][folder]
        except KeyError:
            raise UnknownCategory(
                f"{folder!r} is not a {namespace.value} category folder"
            )

    @staticmethod
    def validate_relative_path(relative_path: str) -> str:
        """
        Check that a relative path stays inside its category directory.

        Raises:
            InvalidIdentifier: On empty, absolute or parent-referencing paths
        """
        if not relative_path or "\x00" in relative_path:
            raise InvalidIdentifier("Relative path must not be empty")
        for segment in relative_path.split("/"):
            if segment in ("", ".", ".."):
                raise InvalidIdentifier(
                    f"Invalid relative path: {relative_path!r}"
                )
        return relative_path

    @staticmethod
    def join_storage_path(
        namespace: Namespace, category: Category, relative_path: str
    ) -> str:
        """Build the canonical storage path string an id encodes."""
        PathCodec.validate_relative_path(relative_path)
        prefix = SHARED_PREFIX if namespace == Namespace.SHARED else ""
        return f"{prefix}{category.value}/{relative_path}"

    @staticmethod
    def split_storage_path(storage_path: str) -> DecodedId:
        """
        Parse a canonical storage path string.

        Raises:
            InvalidIdentifier: If there is no category or relative path
            UnknownCategory: If the category segment is not a known category
        """
        namespace = Namespace.PRIVATE
        if storage_path.startswith(SHARED_PREFIX):
            namespace = Namespace.SHARED
            storage_path = storage_path[len(SHARED_PREFIX) :]

        category_name, sep, relative_path = storage_path.partition("/")
        if not sep:
            raise InvalidIdentifier(f"Storage path has no category: {storage_path!r}")

        category = PathCodec.parse_category(category_name)
        PathCodec.validate_relative_path(relative_path)
        return DecodedId(namespace, category, relative_path)

    @staticmethod
    def encode(namespace: Namespace, category: Category, relative_path: str) -> str:
        """
        Derive the external id of an entry.

        Args:
            namespace: Private or shared pool
            category: Canonical category
            relative_path: "/"-separated path below the category directory

        Returns:
            Base64 id, identical for identical inputs
        """
        storage_path = PathCodec.join_storage_path(namespace, category, relative_path)
        return base64.b64encode(storage_path.encode("utf-8")).decode("ascii")

    @staticmethod
    def decode_to_storage_path(book_id: str) -> str:
        """
        Reverse the base64 transform of an id.

        Raises:
            InvalidIdentifier: If the id is not valid base64 of UTF-8 text
        """
        try:
            return base64.b64decode(book_id, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            raise InvalidIdentifier(f"Malformed book id {book_id!r}: {e}")

    @staticmethod
    def decode(book_id: str) -> DecodedId:
        """
        Decode an external id; exact inverse of encode.

        Raises:
            InvalidIdentifier: Malformed id
            UnknownCategory: Id names a category outside the fixed set
        """
        return PathCodec.split_storage_path(PathCodec.decode_to_storage_path(book_id))
