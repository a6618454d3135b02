"""Service dependencies shared by the routers"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.services.analytics import AnalyticsService
from app.services.bookings import BookingService
from app.services.branches import BranchService
from app.services.customers import CustomerService
from app.services.loyalty import LoyaltyService
from app.services.runtime import Runtime, get_runtime


def get_booking_service(
    db: AsyncSession = Depends(get_db),
    runtime: Runtime = Depends(get_runtime),
) -> BookingService:
    return BookingService(db, runtime.scheduler, runtime.slot_guard, runtime.dispatcher)


def get_customer_service(db: AsyncSession = Depends(get_db)) -> CustomerService:
    return CustomerService(db)


def get_loyalty_service(db: AsyncSession = Depends(get_db)) -> LoyaltyService:
    return LoyaltyService(db)


def get_branch_service(db: AsyncSession = Depends(get_db)) -> BranchService:
    return BranchService(db)


def get_analytics_service(db: AsyncSession = Depends(get_db)) -> AnalyticsService:
    return AnalyticsService(db)
