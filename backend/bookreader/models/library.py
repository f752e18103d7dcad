from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

# ============================================
# Enums
# ============================================


class Namespace(str, Enum):
    """Storage pool an entry lives in"""

    PRIVATE = "private"
    SHARED = "shared"


class Category(str, Enum):
    """Fixed library sections, in listing order"""

    NOVELS = "novels"
    MANGA = "manga"
    TEXTBOOKS = "textbooks"


class BookType(str, Enum):
    """Entry types; MANGA means a directory of page images"""

    PDF = "pdf"
    EPUB = "epub"
    CBZ = "cbz"
    CBR = "cbr"
    MOBI = "mobi"
    MANGA = "manga"


SUPPORTED_EXTENSIONS = frozenset({".pdf", ".epub", ".cbz", ".cbr", ".mobi"})
IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp"})


class CamelModel(BaseModel):
    """Base model serialized with the camelCase keys the web client uses."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================
# Library Models
# ============================================


class LibraryEntry(CamelModel):
    """
    One addressable unit in a user's view of the library.

    `id` is derived from (is_shared, category, relative path) only, so the
    same file always gets the same id. `path` is "{category}/{relative path}"
    with the lowercase category in both namespaces.
    """

    id: str
    name: str
    type: BookType
    path: str
    category: Category
    is_directory: bool
    is_shared: bool
    size: int
    modified: str  # ISO format timestamp from filesystem


class PageInfo(CamelModel):
    """A single page image inside a manga directory"""

    page_number: int
    filename: str
    path: str


class PagesResponse(CamelModel):
    total_pages: int
    pages: list[PageInfo]
    message: str | None = None


class UserSummary(BaseModel):
    """Public view of a registered user (no credentials)"""

    id: str
    username: str
