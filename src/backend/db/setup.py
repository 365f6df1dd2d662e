"""
Database setup module for initializing default values.

Seeds the administrative roles that bypass incident report access checks.
Users themselves are provisioned upstream.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db import Role

logger = logging.getLogger(__name__)


ADMINISTRATIVE_ROLES = ("superadmin", "admin")


class DatabaseSetup:
    """Handles database initialization and default data setup."""

    async def create_roles(self, db: AsyncSession) -> bool:
        """Create the default administrative roles."""
        logger.info("Creating default roles...")

        roles_data = [
            {
                "name": "superadmin",
                "description": "Manages incident report access grants",
            },
            {
                "name": "admin",
                "description": "System administrator with full access",
            },
        ]

        try:
            for role_data in roles_data:
                stmt = select(Role).where(Role.name == role_data["name"])
                result = await db.execute(stmt)
                existing = result.scalar_one_or_none()

                if existing:
                    logger.info(
                        f"Role '{role_data['name']}' already exists, skipping..."
                    )
                    continue

                db.add(Role(**role_data))
                logger.info(f"✅ Created role: {role_data['name']}")

            await db.commit()
            logger.info("✅ Roles seeded successfully")
            return True

        except Exception as e:
            logger.error(f"❌ Failed to create roles: {str(e)}")
            await db.rollback()
            return False

    async def run_setup(self, db: AsyncSession) -> bool:
        """Main function to execute all default values creation."""
        logger.info("🚀 Database setup process started...")

        success = await self.create_roles(db)

        if success:
            logger.info("🎉 Database setup completed successfully!")
        else:
            logger.error("💥 Database setup failed!")

        return success


# Global database setup instance
database_setup = DatabaseSetup()


async def setup_database_default_data(db: AsyncSession) -> bool:
    """
    Convenience function to setup database default data.

    Args:
        db: Database session

    Returns:
        True if setup was successful, False otherwise
    """
    return await database_setup.run_setup(db)
