"""
Unit tests for PathCodec.

Tests cover:
- Round-trip of encode/decode in both namespaces
- Uniqueness of ids
- Compatibility with the existing base64 id format
- Category casing bridge between private and shared folders
- Malformed ids and unknown categories
"""

import base64
import itertools

import pytest

from bookreader.models.library import Category, Namespace
from bookreader.services.errors import InvalidIdentifier, UnknownCategory
from bookreader.services.path_codec import DecodedId, PathCodec

RELATIVE_PATHS = [
    "novel.pdf",
    "x/y.cbz",
    "Series/Volume 01",
    "deep/nested/dir/book.epub",
    "日本語/漫画.cbr",
    "shared/trick.pdf",
    "name with spaces + plus=.mobi",
]


def b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


class TestRoundTrip:
    """Test that decode is the exact inverse of encode"""

    @pytest.mark.parametrize("namespace", list(Namespace))
    @pytest.mark.parametrize("category", list(Category))
    @pytest.mark.parametrize("relative_path", RELATIVE_PATHS)
    def test_decode_inverts_encode(self, namespace, category, relative_path):
        book_id = PathCodec.encode(namespace, category, relative_path)

        assert PathCodec.decode(book_id) == DecodedId(namespace, category, relative_path)

    def test_encode_is_deterministic(self):
        first = PathCodec.encode(Namespace.SHARED, Category.MANGA, "x/y.cbz")
        second = PathCodec.encode(Namespace.SHARED, Category.MANGA, "x/y.cbz")

        assert first == second


class TestUniqueness:
    """Test that distinct entries never share an id"""

    def test_all_combinations_have_distinct_ids(self):
        combos = list(itertools.product(Namespace, Category, RELATIVE_PATHS))
        ids = {PathCodec.encode(*combo) for combo in combos}

        assert len(ids) == len(combos)

    def test_private_path_named_shared_does_not_collide(self):
        """A private folder called "shared" must not look like the shared pool"""
        private_id = PathCodec.encode(Namespace.PRIVATE, Category.NOVELS, "shared/a.pdf")
        shared_id = PathCodec.encode(Namespace.SHARED, Category.NOVELS, "a.pdf")

        assert private_id != shared_id
        assert PathCodec.decode(private_id).namespace == Namespace.PRIVATE


class TestEncodingFormat:
    """Test compatibility with ids already stored in cover settings"""

    def test_private_id_is_base64_of_category_path(self):
        book_id = PathCodec.encode(Namespace.PRIVATE, Category.NOVELS, "novel.pdf")

        assert book_id == b64("novels/novel.pdf")

    def test_shared_id_has_shared_prefix_and_lowercase_category(self):
        book_id = PathCodec.encode(Namespace.SHARED, Category.MANGA, "x/y.cbz")

        assert book_id == b64("shared/manga/x/y.cbz")
        assert PathCodec.decode_to_storage_path(book_id) == "shared/manga/x/y.cbz"

    def test_split_storage_path(self):
        decoded = PathCodec.split_storage_path("shared/textbooks/math/calc.pdf")

        assert decoded.namespace == Namespace.SHARED
        assert decoded.is_shared
        assert decoded.category == Category.TEXTBOOKS
        assert decoded.relative_path == "math/calc.pdf"


class TestCasingBridge:
    """Test the category to folder table of each namespace"""

    def test_shared_folders_are_capitalized(self):
        assert PathCodec.category_folder(Namespace.SHARED, Category.NOVELS) == "Novels"
        assert PathCodec.category_folder(Namespace.SHARED, Category.MANGA) == "Manga"
        assert (
            PathCodec.category_folder(Namespace.SHARED, Category.TEXTBOOKS)
            == "Textbooks"
        )

    def test_private_folders_are_lowercase(self):
        for category in Category:
            assert PathCodec.category_folder(Namespace.PRIVATE, category) == category.value

    @pytest.mark.parametrize("namespace", list(Namespace))
    def test_table_is_bidirectional(self, namespace):
        for category in Category:
            folder = PathCodec.category_folder(namespace, category)
            assert PathCodec.category_from_folder(namespace, folder) == category

    def test_wrong_casing_is_not_a_shared_folder(self):
        with pytest.raises(UnknownCategory):
            PathCodec.category_from_folder(Namespace.SHARED, "manga")


class TestDecodeErrors:
    """Test rejection of malformed ids"""

    @pytest.mark.parametrize("book_id", ["not base64!", "abc", "", "bm92ZWxz\n"])
    def test_malformed_base64(self, book_id):
        with pytest.raises(InvalidIdentifier):
            PathCodec.decode(book_id)

    def test_non_utf8_payload(self):
        book_id = base64.b64encode(b"\xff\xfe\xfd").decode("ascii")

        with pytest.raises(InvalidIdentifier):
            PathCodec.decode(book_id)

    def test_missing_relative_path(self):
        with pytest.raises(InvalidIdentifier):
            PathCodec.decode(b64("novels"))
        with pytest.raises(InvalidIdentifier):
            PathCodec.decode(b64("novels/"))

    @pytest.mark.parametrize(
        "storage_path", ["novels/../secret.pdf", "manga/a//b", "novels/./a.pdf"]
    )
    def test_path_traversal_is_rejected(self, storage_path):
        with pytest.raises(InvalidIdentifier):
            PathCodec.decode(b64(storage_path))

    def test_unknown_category(self):
        with pytest.raises(UnknownCategory):
            PathCodec.decode(b64("comics/issue1.cbz"))

    def test_capitalized_category_is_unknown(self):
        """Ids always carry the canonical lowercase category"""
        with pytest.raises(UnknownCategory):
            PathCodec.decode(b64("shared/Manga/x/y.cbz"))

    def test_encode_rejects_escaping_paths(self):
        with pytest.raises(InvalidIdentifier):
            PathCodec.encode(Namespace.PRIVATE, Category.NOVELS, "../other_user/a.pdf")

    @pytest.mark.parametrize("prefix", ["bm92ZWxzL2", "c2hhcmVkL21hbm"])
    def test_ids_never_end_in_cover_segment(self, prefix):
        """Test that no decodable id ends in "/cover", so DELETE routes stay unambiguous"""
        # The final group "over" decodes to the bytes A2 F7 AB; F7 never occurs in UTF-8
        assert base64.b64decode("over") == b"\xa2\xf7\xab"
        with pytest.raises(InvalidIdentifier):
            PathCodec.decode(f"{prefix}/cover")
