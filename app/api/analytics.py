"""Branch analytics API endpoints"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.api.auth import get_current_user
from app.api.deps import get_analytics_service
from app.models.user import User
from app.schemas.analytics import BranchSummaryResponse, BranchTrendsResponse
from app.services.analytics import MAX_TREND_DAYS, AnalyticsService

router = APIRouter()


@router.get("/branches/{branch_id}/summary", response_model=BranchSummaryResponse)
async def get_branch_summary(
    branch_id: UUID,
    at: Optional[datetime] = None,
    current_user: User = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Today's bookings, arrivals and occupancy for a branch"""
    return await service.branch_summary(current_user, branch_id, at)


@router.get("/branches/{branch_id}/trends", response_model=BranchTrendsResponse)
async def get_branch_trends(
    branch_id: UUID,
    days: int = Query(7, ge=1, le=MAX_TREND_DAYS),
    end_date: Optional[date] = None,
    current_user: User = Depends(get_current_user),
    service: AnalyticsService = Depends(get_analytics_service),
):
    points = await service.branch_trends(current_user, branch_id, days, end_date)
    return BranchTrendsResponse(branch_id=branch_id, days=len(points), points=points)
