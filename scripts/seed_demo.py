#!/usr/bin/env python3
"""
Seed script to create a demo branch with tables, hours and staff
"""

import asyncio
from datetime import time

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


async def seed_demo_data():
    """Seed demo data for development"""
    from sqlalchemy import select

    from app.database import SessionLocal, engine, Base
    from app.models.branch import Branch, OperatingHour, Table, TableType
    from app.models.user import User, UserRole

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with SessionLocal() as db:
        # Check if demo branch already exists
        result = await db.execute(select(Branch).where(Branch.name == "TableBook Downtown"))
        existing = result.scalar_one_or_none()

        if existing:
            print("Demo data already exists. Skipping...")
            return

        print("Creating demo branch...")

        branch = Branch(
            name="TableBook Downtown",
            address="12 Market Street",
            phone="+15551234567",
            email="downtown@tablebook.local",
            timezone="UTC",
        )
        db.add(branch)
        await db.flush()

        print(f"Created branch: {branch.name} (ID: {branch.id})")

        # Open every day 09:00-22:00, closed Sundays (day 0)
        for day in range(7):
            db.add(
                OperatingHour(
                    branch_id=branch.id,
                    day_of_week=day,
                    open_time=None if day == 0 else time(9, 0),
                    close_time=None if day == 0 else time(22, 0),
                    is_closed=day == 0,
                )
            )

        tables = [
            ("T1", 2, 1, TableType.REGULAR, False),
            ("T2", 2, 1, TableType.REGULAR, True),
            ("T3", 4, 2, TableType.REGULAR, True),
            ("T4", 4, 2, TableType.BOOTH, False),
            ("T5", 6, 3, TableType.REGULAR, True),
            ("P1", 10, 6, TableType.PRIVATE, False),
        ]
        for number, capacity, min_capacity, kind, combinable in tables:
            db.add(
                Table(
                    branch_id=branch.id,
                    table_number=number,
                    capacity=capacity,
                    min_capacity=min_capacity,
                    table_type=kind,
                    is_combinable=combinable,
                )
            )

        users = [
            ("admin@tablebook.local", "admin123", "Master Admin", UserRole.MASTER_ADMIN, None),
            ("manager@tablebook.local", "manager123", "Branch Manager", UserRole.BRANCH_ADMIN, branch.id),
            ("host@tablebook.local", "host123", "Front Host", UserRole.STAFF, branch.id),
        ]
        for email, password, name, role, branch_id in users:
            db.add(
                User(
                    email=email,
                    hashed_password=pwd_context.hash(password),
                    full_name=name,
                    role=role,
                    branch_id=branch_id,
                )
            )

        await db.commit()

        print(f"""
Demo data created successfully!

Branch: TableBook Downtown
  ID: {branch.id}
  Tables: {len(tables)}

Users:
  Master Admin:   admin@tablebook.local / admin123
  Branch Admin:   manager@tablebook.local / manager123
  Staff:          host@tablebook.local / host123
""")


if __name__ == "__main__":
    asyncio.run(seed_demo_data())
