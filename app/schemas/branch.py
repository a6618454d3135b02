"""Branch, table, operating hour and blocked slot schemas"""

from datetime import date, datetime, time
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field

from app.models.branch import TableType


class BranchResponse(BaseModel):
    """Branch response"""
    id: UUID
    name: str
    address: Optional[str]
    phone: Optional[str]
    email: Optional[str]
    timezone: Optional[str]
    is_active: bool

    class Config:
        from_attributes = True


class TableCreate(BaseModel):
    """Create table request"""
    table_number: str = Field(min_length=1, max_length=20)
    capacity: int = Field(ge=1)
    min_capacity: int = Field(default=1, ge=1)
    table_type: TableType = TableType.REGULAR
    position_x: Optional[int] = None
    position_y: Optional[int] = None
    floor: int = 1
    is_combinable: bool = False


class TableResponse(BaseModel):
    """Table response"""
    id: UUID
    branch_id: UUID
    table_number: str
    capacity: int
    min_capacity: int
    table_type: TableType
    position_x: Optional[int]
    position_y: Optional[int]
    floor: Optional[int]
    is_combinable: bool
    is_active: bool

    class Config:
        from_attributes = True


class CombineRequest(BaseModel):
    """Tables to combine"""
    table_ids: List[UUID]


class CombineResponse(BaseModel):
    """Validated table combination"""
    branch_id: UUID
    table_ids: List[UUID]
    table_numbers: List[str]
    combined_capacity: int


class OperatingHourIn(BaseModel):
    """One day of the weekly schedule (0 = Sunday)"""
    day_of_week: int = Field(ge=0, le=6)
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    break_start: Optional[time] = None
    break_end: Optional[time] = None
    is_closed: bool = False


class OperatingHourResponse(OperatingHourIn):
    """Operating hour response"""
    id: UUID

    class Config:
        from_attributes = True


class BlockedSlotCreate(BaseModel):
    """Create blocked slot request"""
    date: date
    start_time: time
    end_time: time
    reason: Optional[str] = None


class BlockedSlotResponse(BaseModel):
    """Blocked slot response"""
    id: UUID
    branch_id: UUID
    date: date
    start_time: time
    end_time: time
    reason: Optional[str]
    created_by_id: Optional[UUID]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True
