"""Waitlist API endpoints"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from tablebook.api.deps import get_current_staff, get_waitlist_manager
from tablebook.engine.waitlist import WaitlistManager
from tablebook.schemas.auth import StaffIdentity
from tablebook.schemas.waitlist import (
    WaitEstimateResponse,
    WaitlistAction,
    WaitlistEntryResponse,
    WaitlistJoin,
    WaitlistJoinResponse,
)

router = APIRouter()


@router.post("", response_model=WaitlistJoinResponse, status_code=201)
async def join_waitlist(
    data: WaitlistJoin,
    manager: WaitlistManager = Depends(get_waitlist_manager),
):
    entry = await manager.join(data)
    return WaitlistJoinResponse(id=entry.id, position=entry.position, estimated_minutes=entry.estimated_wait)


@router.get("/estimate", response_model=WaitEstimateResponse)
async def get_wait_estimate(
    party_size: int = Query(..., ge=1),
    position: int = Query(1, ge=1),
    manager: WaitlistManager = Depends(get_waitlist_manager),
):
    """Predicted wait for a party at a given line position"""
    estimate = await manager.estimator.estimate_wait(party_size, position)
    return WaitEstimateResponse(**estimate.model_dump())


@router.get("", response_model=List[WaitlistEntryResponse])
async def list_waitlist(
    staff: StaffIdentity = Depends(get_current_staff),
    manager: WaitlistManager = Depends(get_waitlist_manager),
):
    return await manager.list_active()


@router.post("/{entry_id}/action", response_model=WaitlistEntryResponse)
async def act_on_entry(
    entry_id: UUID,
    data: WaitlistAction,
    staff: StaffIdentity = Depends(get_current_staff),
    manager: WaitlistManager = Depends(get_waitlist_manager),
):
    return await manager.act(
        entry_id,
        data.action,
        actor=staff.display_name,
        create_reservation=data.create_reservation,
        table_id=data.table_id,
    )
