import logging

from fastapi import APIRouter, HTTPException

from ..models.library import LibraryEntry, UserSummary
from ..models.responses import ActionResponse
from ..services.errors import LibraryError
from .dependencies import (
    CurrentUser,
    LibraryServiceDep,
    UserRegistryDep,
    is_safe_user_id,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


def _check_owner_id(owner_id: str) -> None:
    if not is_safe_user_id(owner_id):
        raise HTTPException(status_code=400, detail="Invalid user id")


@router.get("", response_model=list[UserSummary])
def list_users(user_id: CurrentUser, registry: UserRegistryDep) -> list[UserSummary]:
    """
    List the other registered users whose libraries can be browsed
    """
    return registry.list_users(exclude_user_id=user_id)


@router.get("/{owner_id}/books", response_model=list[LibraryEntry])
def list_user_books(
    owner_id: str, user_id: CurrentUser, library: LibraryServiceDep
) -> list[LibraryEntry]:
    """
    Browse another user's private books
    """
    _check_owner_id(owner_id)
    try:
        return library.list_user_books(owner_id)
    except Exception as e:
        logger.error(f"Error reading books of user {owner_id}: {e}")
        raise HTTPException(
            status_code=500, detail=f"Failed to read shared books: {str(e)}"
        )


@router.post("/{owner_id}/books/{book_id:path}/copy", response_model=ActionResponse)
def copy_user_book(
    owner_id: str, book_id: str, user_id: CurrentUser, library: LibraryServiceDep
) -> ActionResponse:
    """
    Copy a book from another user's library into the caller's
    """
    _check_owner_id(owner_id)
    try:
        library.copy_from_user(user_id, owner_id, book_id)
        return ActionResponse(success=True, message="Book added to your library!")
    except LibraryError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        logger.error(f"Error copying book: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to copy book: {str(e)}")
