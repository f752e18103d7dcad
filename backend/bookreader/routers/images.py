from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from ..services.errors import LibraryError
from .dependencies import CurrentUser, LibraryServiceDep

router = APIRouter(prefix="/api/images", tags=["images"])


@router.get("/{image_path:path}")
def get_image(image_path: str, user_id: CurrentUser, library: LibraryServiceDep):
    """
    Serve a page image from a manga folder by its storage path,
    e.g. "manga/Series/001.jpg" or "shared/manga/Series/001.jpg"
    """
    try:
        path = library.resolve_storage_path(user_id, image_path)
    except LibraryError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    if not path.is_file():
        raise HTTPException(status_code=404, detail="Image not found")

    return FileResponse(
        path=str(path), headers={"Cache-Control": "private, max-age=86400"}
    )
