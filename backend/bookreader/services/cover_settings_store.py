"""
Cover Settings Store

Per-user mapping of book id to the page used as the book's cover, kept in
<user root>/<user id>/.cover-settings.json as {"<book id>": {"pageNumber": n}}.
The file is read and rewritten on every call; a missing or unreadable file
counts as empty settings.
"""

import json
import logging
import threading
from pathlib import Path

logger = logging.getLogger(__name__)

SETTINGS_FILENAME = ".cover-settings.json"
DEFAULT_COVER_PAGE = 1


class CoverSettingsStore:
    def __init__(self, user_books_dir: Path) -> None:
        self.user_books_dir = Path(user_books_dir)
        self._lock = threading.Lock()

    def settings_path(self, user_id: str) -> Path:
        return self.user_books_dir / user_id / SETTINGS_FILENAME

    def _load(self, user_id: str) -> dict:
        path = self.settings_path(user_id)
        try:
            with open(path, encoding="utf-8") as f:
                settings = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cover settings {path}: {e}")
            return {}

        if not isinstance(settings, dict):
            logger.warning(f"Ignoring cover settings {path}: not a JSON object")
            return {}
        return settings

    def _save(self, user_id: str, settings: dict) -> None:
        path = self.settings_path(user_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(settings, f, indent=2)

    def get(self, user_id: str, book_id: str) -> int:
        """Cover page of a book, 1 when none was set."""
        with self._lock:
            entry = self._load(user_id).get(book_id)

        if isinstance(entry, dict):
            page_number = entry.get("pageNumber")
            if isinstance(page_number, int) and page_number >= 1:
                return page_number
        return DEFAULT_COVER_PAGE

    def set(self, user_id: str, book_id: str, page_number: int) -> None:
        """
        Store the cover page of a book.

        Raises:
            ValueError: If page_number is below 1
        """
        if page_number < 1:
            raise ValueError(f"Page number must be at least 1, got {page_number}")

        with self._lock:
            settings = self._load(user_id)
            settings[book_id] = {"pageNumber": page_number}
            self._save(user_id, settings)
        logger.debug(f"Cover page of {book_id} for user {user_id} set to {page_number}")

    def clear(self, user_id: str, book_id: str) -> bool:
        """
        Reset a book to the default cover page.

        Returns:
            True if a setting was removed, False if the book already used the default
        """
        with self._lock:
            settings = self._load(user_id)
            if book_id not in settings:
                return False
            del settings[book_id]
            self._save(user_id, settings)
        return True
