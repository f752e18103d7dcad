"""FastAPI dependency injection."""

from functools import lru_cache
from pathlib import Path
from typing import Annotated

from fastapi import Depends, Header, HTTPException

from ..config import Settings, get_settings
from ..services.cover_settings_store import CoverSettingsStore
from ..services.library_scanner import LibraryScanner
from ..services.library_service import LibraryService
from ..services.upload_assembler import UploadAssembler
from ..services.user_registry import UserRegistry

# =============================================================================
# Services
# =============================================================================


@lru_cache
def get_library_scanner() -> LibraryScanner:
    settings = get_settings()
    return LibraryScanner(
        Path(settings.user_books_dir), Path(settings.shared_books_dir)
    )


@lru_cache
def get_cover_settings_store() -> CoverSettingsStore:
    return CoverSettingsStore(Path(get_settings().user_books_dir))


@lru_cache
def get_library_service() -> LibraryService:
    settings = get_settings()
    return LibraryService(
        get_library_scanner(),
        get_cover_settings_store(),
        max_upload_bytes=settings.max_upload_bytes,
        conflict_policy=settings.upload_conflict_policy,
    )


@lru_cache
def get_upload_assembler() -> UploadAssembler:
    """Single process-wide table of pending chunked uploads."""
    settings = get_settings()
    return UploadAssembler(
        Path(settings.user_books_dir),
        conflict_policy=settings.upload_conflict_policy,
        ttl_seconds=settings.pending_upload_ttl_seconds,
        max_upload_bytes=settings.max_upload_bytes,
    )


@lru_cache
def get_user_registry() -> UserRegistry:
    return UserRegistry(Path(get_settings().users_file))


# =============================================================================
# Caller identity
# =============================================================================


def is_safe_user_id(user_id: str) -> bool:
    return bool(user_id) and user_id not in (".", "..") and not any(
        c in user_id for c in "/\\\x00"
    )


def get_current_user_id(x_user_id: Annotated[str | None, Header()] = None) -> str:
    """
    Id of the caller, set by the authentication layer in front of this
    service after it has validated the session token.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=401, detail="Access denied. No user identity provided."
        )
    if not is_safe_user_id(x_user_id):
        raise HTTPException(status_code=400, detail="Invalid user id")
    return x_user_id


SettingsDep = Annotated[Settings, Depends(get_settings)]
CurrentUser = Annotated[str, Depends(get_current_user_id)]
LibraryServiceDep = Annotated[LibraryService, Depends(get_library_service)]
CoverSettingsDep = Annotated[CoverSettingsStore, Depends(get_cover_settings_store)]
UploadAssemblerDep = Annotated[UploadAssembler, Depends(get_upload_assembler)]
UserRegistryDep = Annotated[UserRegistry, Depends(get_user_registry)]
