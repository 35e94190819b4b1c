#!/usr/bin/env python3
"""
Database seeding script for the Haaman Network backend.

This script populates the database with:
- Default admin settings
- Admin profile
- Sample store products
- A funded test profile (development only)
"""

import asyncio
import sys
import os

# Add the project root to the Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.config import settings
from app.core.database import engine, Base, AsyncSessionLocal
from app.core.security import create_access_token
from app.database_model import profile, transaction, beneficiary, admin_setting, referral_reward  # noqa: F401
from app.database_model.store import Product
from app.services.config_service import ConfigService
from app.services.profile_service import ProfileService
from app.services.wallet_service import WalletService

SAMPLE_PRODUCTS = [
    {"name": "Haaman Power Bank 20000mAh", "price": 15000.0, "category": "gadgets",
     "description": "Fast-charging power bank with two USB ports"},
    {"name": "MiFi Router", "price": 25000.0, "category": "gadgets",
     "description": "4G portable router, works on all networks"},
    {"name": "Solar Lamp", "price": 8500.0, "category": "home",
     "description": "Rechargeable lamp with solar panel"},
]


async def create_admin_profile(db: AsyncSession):
    """Create default admin profile."""
    print("Creating admin profile...")

    profile_service = ProfileService(db)
    admin_email = "admin@haaman.ng"
    admin = await profile_service.get_by_email(admin_email)
    if admin:
        print("Admin profile already exists")
    else:
        admin = await profile_service.create_profile(admin_email, "System Administrator", "08030000000")
        admin.is_admin = True
        await db.commit()

    token = create_access_token(data={"sub": str(admin.id)})
    print(f"Admin profile: {admin_email} (id {admin.id})")
    print(f"Admin bearer token: {token}")


async def create_sample_products(db: AsyncSession):
    """Create sample store products."""
    print("Creating sample products...")

    for product_data in SAMPLE_PRODUCTS:
        existing = await db.execute(select(Product).where(Product.name == product_data["name"]))
        if existing.scalar_one_or_none():
            continue
        db.add(Product(**product_data))

    await db.commit()


async def create_sample_test_profile(db: AsyncSession):
    """Create a funded test profile for development."""
    print("Creating test profile...")

    profile_service = ProfileService(db)
    test_email = "test@example.com"
    if await profile_service.get_by_email(test_email):
        print("Test profile already exists")
        return

    test_profile = await profile_service.create_profile(test_email, "Test User", "08031234567")
    await profile_service.set_pin(test_profile.id, "1234")
    await WalletService(db).fund_wallet(test_profile.id, 10000.0, "SEED-FUNDING-1")

    print(f"Test profile created: {test_email} (PIN 1234, referral code {test_profile.referral_code})")
    print(f"Test profile token: {create_access_token(data={'sub': str(test_profile.id)})}")


async def main():
    """Main seeding function."""
    print("Starting database seeding...")
    print(f"Environment: {settings.environment}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        try:
            created = await ConfigService(db).ensure_defaults()
            print(f"Default settings created: {len(created)}")

            await create_admin_profile(db)
            await create_sample_products(db)

            # Only create test profile in development
            if settings.environment == "development":
                await create_sample_test_profile(db)

            print("\nDatabase seeding completed successfully!")
            print("\nYou can now start the application with: uvicorn app.main:app --reload")

        except Exception as e:
            print(f"Error during seeding: {e}")
            await db.rollback()
            raise

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
