from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.security import get_current_active_user
from models.user import User
from repositories.package import PackageRepository
from schemas.package import PaymentRead
from schemas.responses import PaginatedData, StandardSuccessResponse

router = APIRouter()


@router.get("", response_model=StandardSuccessResponse)
async def list_payments(
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    rows, total = await PackageRepository(db).payments_for_user(current_user.id, page, per_page)
    items = [PaymentRead.model_validate(p) for p in rows]
    return {"success": True, "message": "Success", "data": PaginatedData.create(items, total, page, per_page)}
