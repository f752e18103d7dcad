from pydantic import Field

from .library import CamelModel, Category

# ============================================
# Request Models
# ============================================


class CoverPageRequest(CamelModel):
    page_number: int = Field(ge=1)


class RenameRequest(CamelModel):
    new_name: str


class CategoryChangeRequest(CamelModel):
    category: Category


# ============================================
# Response Models
# ============================================


class CoverPageResponse(CamelModel):
    page_number: int


class ActionResponse(CamelModel):
    """Generic success response for mutations"""

    success: bool
    message: str


class CoverSetResponse(ActionResponse):
    page_number: int


class RenameResponse(ActionResponse):
    new_id: str
    new_name: str


class CategoryChangeResponse(ActionResponse):
    new_id: str
