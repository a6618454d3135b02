"""Branch analytics schemas"""

from datetime import date
from typing import List
from uuid import UUID
from pydantic import BaseModel


class BranchSummaryResponse(BaseModel):
    """One day of booking activity for a branch"""
    branch_id: UUID
    date: date
    total_bookings: int
    completed_bookings: int
    cancelled_bookings: int
    no_show_bookings: int
    no_show_rate: float
    upcoming_arrivals: int
    checked_in_guests: int
    total_capacity: int
    occupancy_rate: float


class TrendPoint(BaseModel):
    """Status counts for one day"""
    date: date
    total_bookings: int
    completed: int
    cancelled: int
    no_show: int


class BranchTrendsResponse(BaseModel):
    branch_id: UUID
    days: int
    points: List[TrendPoint]
