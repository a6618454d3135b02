"""Branch administration API endpoints"""

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.api.auth import get_current_user
from app.api.deps import get_branch_service
from app.models.user import User
from app.schemas.branch import (
    BlockedSlotCreate,
    BlockedSlotResponse,
    BranchResponse,
    CombineRequest,
    CombineResponse,
    OperatingHourIn,
    OperatingHourResponse,
    TableCreate,
    TableResponse,
)
from app.services.branches import BranchService

router = APIRouter()


@router.get("", response_model=List[BranchResponse])
async def list_branches(
    current_user: User = Depends(get_current_user),
    service: BranchService = Depends(get_branch_service),
):
    return await service.list_branches(current_user)


@router.get("/{branch_id}", response_model=BranchResponse)
async def get_branch(
    branch_id: UUID,
    current_user: User = Depends(get_current_user),
    service: BranchService = Depends(get_branch_service),
):
    return await service.get_branch(current_user, branch_id)


@router.get("/{branch_id}/tables", response_model=List[TableResponse])
async def list_tables(
    branch_id: UUID,
    current_user: User = Depends(get_current_user),
    service: BranchService = Depends(get_branch_service),
):
    return await service.list_tables(current_user, branch_id)


@router.post("/{branch_id}/tables", response_model=TableResponse, status_code=status.HTTP_201_CREATED)
async def create_table(
    branch_id: UUID,
    table_data: TableCreate,
    current_user: User = Depends(get_current_user),
    service: BranchService = Depends(get_branch_service),
):
    return await service.create_table(current_user, branch_id, **table_data.model_dump())


@router.post("/{branch_id}/tables/combine", response_model=CombineResponse)
async def combine_tables(
    branch_id: UUID,
    request: CombineRequest,
    current_user: User = Depends(get_current_user),
    service: BranchService = Depends(get_branch_service),
):
    """Validate a combination of tables and report its capacity"""
    return await service.combine(current_user, branch_id, request.table_ids)


@router.get("/{branch_id}/operating-hours", response_model=List[OperatingHourResponse])
async def get_operating_hours(
    branch_id: UUID,
    current_user: User = Depends(get_current_user),
    service: BranchService = Depends(get_branch_service),
):
    return await service.get_operating_hours(current_user, branch_id)


@router.put("/{branch_id}/operating-hours", response_model=List[OperatingHourResponse])
async def set_operating_hours(
    branch_id: UUID,
    hours: List[OperatingHourIn],
    current_user: User = Depends(get_current_user),
    service: BranchService = Depends(get_branch_service),
):
    """Replace the weekly schedule"""
    return await service.set_operating_hours(
        current_user, branch_id, [h.model_dump() for h in hours]
    )


@router.get("/{branch_id}/blocked-slots", response_model=List[BlockedSlotResponse])
async def list_blocked_slots(
    branch_id: UUID,
    on_date: Optional[date] = None,
    current_user: User = Depends(get_current_user),
    service: BranchService = Depends(get_branch_service),
):
    return await service.list_blocked_slots(current_user, branch_id, on_date)


@router.post(
    "/{branch_id}/blocked-slots",
    response_model=BlockedSlotResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_blocked_slot(
    branch_id: UUID,
    slot_data: BlockedSlotCreate,
    current_user: User = Depends(get_current_user),
    service: BranchService = Depends(get_branch_service),
):
    return await service.create_blocked_slot(
        current_user,
        branch_id,
        slot_data.date,
        slot_data.start_time,
        slot_data.end_time,
        slot_data.reason,
    )


@router.delete("/{branch_id}/blocked-slots/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_blocked_slot(
    branch_id: UUID,
    slot_id: UUID,
    current_user: User = Depends(get_current_user),
    service: BranchService = Depends(get_branch_service),
):
    await service.delete_blocked_slot(current_user, branch_id, slot_id)
