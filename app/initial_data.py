import asyncio
import logging
import os
from sqlalchemy import select
from app.database import AsyncSessionLocal, engine
from app.models.user import User
from app.models.client import Package
from app.models.enums import Role
from app.auth.security import get_password_hash

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SEED_PASSWORD = os.getenv("SEED_PASSWORD", "FitCoach123!")

USERS = [
    {
        "email": "admin@fitcoach.local",
        "full_name": "System Administrator",
        "role": Role.ADMIN,
    },
    {
        "email": "trainer@fitcoach.local",
        "full_name": "Demo Trainer",
        "role": Role.TRAINER,
    },
]

PACKAGES = [
    {
        "name": "Basic",
        "description": "Perfect for beginners",
        "price": 29.99,
        "features": ["Access to gym equipment", "Basic workout plans"],
        "workout_plan_access": True,
    },
    {
        "name": "Premium",
        "description": "Most popular choice",
        "price": 59.99,
        "features": ["All Basic features", "Video library access", "Diet plans", "2 live sessions/month"],
        "video_access": True,
        "diet_plan_access": True,
        "workout_plan_access": True,
        "live_sessions_per_month": 2,
    },
    {
        "name": "Elite",
        "description": "Complete fitness solution",
        "price": 99.99,
        "features": ["All Premium features", "Unlimited live sessions", "Personal trainer support", "Priority support"],
        "video_access": True,
        "diet_plan_access": True,
        "workout_plan_access": True,
        "priority_support_access": True,
        "live_sessions_per_month": 999,
    },
]


async def seed_data():
    async with AsyncSessionLocal() as session:
        for user_data in USERS:
            result = await session.execute(select(User).where(User.email == user_data["email"]))
            if result.scalar_one_or_none():
                logger.info("User already exists: %s", user_data["email"])
                continue
            session.add(User(**user_data, hashed_password=get_password_hash(SEED_PASSWORD), is_active=True))
            logger.info("Created user: %s", user_data["email"])

        existing = (await session.execute(select(Package.name))).scalars().all()
        if existing:
            logger.info("Found %s existing packages", len(existing))
        else:
            for package_data in PACKAGES:
                session.add(Package(**package_data))
            logger.info("Created %s default packages", len(PACKAGES))

        await session.commit()
    await engine.dispose()
    logger.info("Seeding complete.")

if __name__ == "__main__":
    asyncio.run(seed_data())
