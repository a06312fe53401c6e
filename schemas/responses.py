from pydantic import BaseModel
from typing import Optional, Any, List


class StandardSuccessResponse(BaseModel):
    success: bool = True
    message: str
    data: Optional[Any] = None


class AuthTokenResponse(BaseModel):
    success: bool = True
    message: str
    data: Optional[Any] = None
    token: str
    token_type: str = "Bearer"


class PaginatedData(BaseModel):
    items: List[Any]
    total: int
    page: int
    per_page: int
    last_page: int

    @classmethod
    def create(cls, items: List[Any], total: int, page: int, per_page: int):
        last_page = max(1, (total + per_page - 1) // per_page)
        return cls(items=items, total=total, page=page, per_page=per_page, last_page=last_page)
