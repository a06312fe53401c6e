"""
Lead endpoints for verified experts.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import require_approved_expert
from core.database import get_db
from models.lead import Lead, LeadStatus
from models.user import User
from repositories.lead import LeadRepository
from schemas.lead import LeadActivityRead, LeadClose, LeadDetail, LeadRead
from schemas.responses import PaginatedData, StandardSuccessResponse
from services.broadcast_service import Broadcaster, get_broadcaster, lead_channel
from services.lead_service import close_lead, lead_stats, mark_contacted, mark_converted, mark_viewed

router = APIRouter()


async def _own_lead(db: AsyncSession, lead_id: int, expert: User) -> Lead:
    lead = await LeadRepository(db).get_for_expert(lead_id, expert.id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    return lead


async def _status_changed(broadcaster: Broadcaster, lead: Lead):
    await broadcaster.publish(
        [lead_channel(lead.id)],
        "lead.status_changed",
        {"lead_id": lead.id, "status": lead.status.value, "updated_at": lead.updated_at},
    )


@router.get("", response_model=StandardSuccessResponse)
async def list_leads(
    status: Optional[LeadStatus] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    current_user: User = Depends(require_approved_expert),
    db: AsyncSession = Depends(get_db),
):
    rows, total = await LeadRepository(db).list_for_expert(current_user.id, page, per_page, status=status)
    items = [LeadDetail.model_validate(lead) for lead in rows]
    return {"success": True, "message": "Success", "data": PaginatedData.create(items, total, page, per_page)}


@router.get("/stats", response_model=StandardSuccessResponse)
async def show_stats(current_user: User = Depends(require_approved_expert), db: AsyncSession = Depends(get_db)):
    return {"success": True, "message": "Success", "data": await lead_stats(db, current_user)}


@router.get("/{lead_id}", response_model=StandardSuccessResponse)
async def show_lead(
    lead_id: int,
    current_user: User = Depends(require_approved_expert),
    db: AsyncSession = Depends(get_db),
):
    lead = await _own_lead(db, lead_id, current_user)
    activities = await LeadRepository(db).activities(lead.id)
    data = LeadDetail.model_validate(lead).model_dump()
    data["activities"] = [LeadActivityRead.model_validate(a) for a in activities]
    return {"success": True, "message": "Success", "data": data}


@router.put("/{lead_id}/view", response_model=StandardSuccessResponse)
async def view_lead(
    lead_id: int,
    current_user: User = Depends(require_approved_expert),
    db: AsyncSession = Depends(get_db),
):
    lead = await mark_viewed(db, await _own_lead(db, lead_id, current_user), current_user)
    return {"success": True, "message": "Lead marked as viewed", "data": LeadRead.model_validate(lead)}


@router.put("/{lead_id}/contact", response_model=StandardSuccessResponse)
async def contact_lead(
    lead_id: int,
    current_user: User = Depends(require_approved_expert),
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    lead = await mark_contacted(db, await _own_lead(db, lead_id, current_user), current_user)
    await _status_changed(broadcaster, lead)
    return {"success": True, "message": "Lead marked as contacted", "data": LeadRead.model_validate(lead)}


@router.put("/{lead_id}/convert", response_model=StandardSuccessResponse)
async def convert_lead(
    lead_id: int,
    current_user: User = Depends(require_approved_expert),
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    lead = await mark_converted(db, await _own_lead(db, lead_id, current_user), current_user)
    await _status_changed(broadcaster, lead)
    return {"success": True, "message": "Lead marked as converted", "data": LeadRead.model_validate(lead)}


@router.put("/{lead_id}/close", response_model=StandardSuccessResponse)
async def close(
    lead_id: int,
    body: Optional[LeadClose] = None,
    current_user: User = Depends(require_approved_expert),
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    reason = body.reason if body else None
    lead = await close_lead(db, await _own_lead(db, lead_id, current_user), current_user, reason)
    await _status_changed(broadcaster, lead)
    return {"success": True, "message": "Lead closed", "data": LeadRead.model_validate(lead)}
