"""
User Registry

Read-only access to the flat user list maintained by the authentication
service ({"users": [{"id": ..., "username": ..., ...}]}). Only ids and
usernames ever leave this module.
"""

import json
import logging
from pathlib import Path

from ..models.library import UserSummary

logger = logging.getLogger(__name__)


class UserRegistry:
    def __init__(self, users_file: Path) -> None:
        self.users_file = Path(users_file)

    def _load_records(self) -> list[dict]:
        try:
            with open(self.users_file, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            logger.error(f"Error reading user registry {self.users_file}: {e}")
            return []

        users = data.get("users", []) if isinstance(data, dict) else []
        return [user for user in users if isinstance(user, dict) and "id" in user]

    def list_users(self, exclude_user_id: str | None = None) -> list[UserSummary]:
        """
        List registered users.

        Args:
            exclude_user_id: Usually the caller, who is left out of the list
        """
        return [
            UserSummary(id=str(user["id"]), username=str(user.get("username", "")))
            for user in self._load_records()
            if str(user["id"]) != exclude_user_id
        ]

