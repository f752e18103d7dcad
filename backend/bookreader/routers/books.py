import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from ..models.library import LibraryEntry, PagesResponse
from ..models.responses import (
    ActionResponse,
    CategoryChangeRequest,
    CategoryChangeResponse,
    CoverPageRequest,
    CoverPageResponse,
    CoverSetResponse,
    RenameRequest,
    RenameResponse,
)
from ..services.errors import LibraryError
from .dependencies import CoverSettingsDep, CurrentUser, LibraryServiceDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/books", tags=["books"])

# Book ids are base64 and may contain "/", hence the path converters below.


@router.get("", response_model=list[LibraryEntry])
def list_books(user_id: CurrentUser, library: LibraryServiceDep) -> list[LibraryEntry]:
    """
    List the caller's books and the shared pool
    """
    try:
        return library.list_library(user_id)
    except Exception as e:
        logger.error(f"Error reading books for user {user_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500, detail=f"Failed to read books directory: {str(e)}"
        )


@router.get("/{book_id:path}/pages", response_model=PagesResponse)
def get_pages(
    book_id: str, user_id: CurrentUser, library: LibraryServiceDep
) -> PagesResponse:
    """
    List the page images of a manga folder
    """
    try:
        return library.get_pages(user_id, book_id)
    except LibraryError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        logger.error(f"Error getting pages: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to get book pages: {str(e)}")


@router.get("/{book_id:path}/file")
def get_book_file(book_id: str, user_id: CurrentUser, library: LibraryServiceDep):
    """
    Serve the book file itself
    """
    try:
        path = library.resolve(user_id, book_id)
        if not path.is_file():
            raise HTTPException(status_code=400, detail="Not a file")

        stat = path.stat()
        return FileResponse(
            path=str(path),
            filename=path.name,
            headers={
                "Cache-Control": "private, max-age=3600",
                "ETag": f'"{int(stat.st_mtime * 1000)}-{stat.st_size}"',
            },
        )
    except HTTPException:
        raise
    except LibraryError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except OSError as e:
        logger.error(f"Error serving file: {e}")
        raise HTTPException(status_code=404, detail="File not found")


# ============================================
# Cover page
# ============================================


@router.get("/{book_id:path}/cover", response_model=CoverPageResponse)
def get_cover_page(
    book_id: str, user_id: CurrentUser, cover_settings: CoverSettingsDep
) -> CoverPageResponse:
    """
    Get the cover page of a book (1 unless set)
    """
    return CoverPageResponse(page_number=cover_settings.get(user_id, book_id))


@router.post("/{book_id:path}/cover", response_model=CoverSetResponse)
def set_cover_page(
    book_id: str,
    request: CoverPageRequest,
    user_id: CurrentUser,
    library: LibraryServiceDep,
    cover_settings: CoverSettingsDep,
) -> CoverSetResponse:
    """
    Choose which page is shown as the cover of a book
    """
    try:
        library.resolve(user_id, book_id)
        cover_settings.set(user_id, book_id, request.page_number)
        return CoverSetResponse(
            success=True,
            message="Cover page set successfully",
            page_number=request.page_number,
        )
    except LibraryError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        logger.error(f"Error setting cover page: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to set cover page: {str(e)}")


@router.delete("/{book_id:path}/cover", response_model=ActionResponse)
def reset_cover_page(
    book_id: str, user_id: CurrentUser, cover_settings: CoverSettingsDep
) -> ActionResponse:
    """
    Reset a book to the default cover page
    """
    try:
        if cover_settings.clear(user_id, book_id):
            return ActionResponse(success=True, message="Cover page reset to default")
        return ActionResponse(success=True, message="Already using default cover page")
    except Exception as e:
        logger.error(f"Error resetting cover page: {e}")
        raise HTTPException(
            status_code=500, detail=f"Failed to reset cover page: {str(e)}"
        )


# ============================================
# Library management
# ============================================


@router.post("/{book_id:path}/rename", response_model=RenameResponse)
def rename_book(
    book_id: str,
    request: RenameRequest,
    user_id: CurrentUser,
    library: LibraryServiceDep,
) -> RenameResponse:
    """
    Rename a book or manga folder
    """
    try:
        new_id, new_name = library.rename(user_id, book_id, request.new_name)
        return RenameResponse(
            success=True,
            message="Book renamed successfully",
            new_id=new_id,
            new_name=new_name,
        )
    except LibraryError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        logger.error(f"Error renaming book: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to rename book: {str(e)}")


@router.post("/{book_id:path}/category", response_model=CategoryChangeResponse)
def change_book_category(
    book_id: str,
    request: CategoryChangeRequest,
    user_id: CurrentUser,
    library: LibraryServiceDep,
) -> CategoryChangeResponse:
    """
    Move a book to another category
    """
    try:
        new_id = library.change_category(user_id, book_id, request.category)
        return CategoryChangeResponse(
            success=True,
            message="Book category changed successfully",
            new_id=new_id,
        )
    except LibraryError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        logger.error(f"Error changing category: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to change category: {str(e)}")


@router.delete("/{book_id:path}", response_model=ActionResponse)
def delete_book(
    book_id: str, user_id: CurrentUser, library: LibraryServiceDep
) -> ActionResponse:
    """
    Delete a book or manga folder from the caller's library
    """
    try:
        library.delete(user_id, book_id)
        return ActionResponse(success=True, message="Book deleted successfully")
    except LibraryError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        logger.error(f"Error deleting book: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to delete book: {str(e)}")
