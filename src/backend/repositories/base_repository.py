"""
Base repository with generic read operations.

Provides reusable database operations that can be inherited by specific repositories.
"""
from typing import Any, Generic, List, Optional, Sequence, Tuple, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlmodel import SQLModel

# Type variable for the model class
ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository providing common read operations.

    Usage:
        class MeetingRepository(BaseRepository[Meeting]):
            model = Meeting
    """

    model: Type[ModelType] = None

    @classmethod
    async def find_by_id(
        cls,
        db: AsyncSession,
        id_value: Any,
        *,
        eager_load: Optional[List] = None,
        refresh: bool = False,
    ) -> Optional[ModelType]:
        """
        Find a single record by ID.

        Args:
            db: Database session
            id_value: The ID value to search for
            eager_load: List of relationships to eager load (selectinload)
            refresh: Overwrite an instance already held by the session
                (needed after Core-level UPDATE/INSERT statements)

        Returns:
            Model instance or None if not found
        """
        stmt = select(cls.model).where(cls.model.id == id_value)

        if eager_load:
            for relationship in eager_load:
                stmt = stmt.options(selectinload(relationship))

        if refresh:
            stmt = stmt.execution_options(populate_existing=True)

        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @classmethod
    async def exists(cls, db: AsyncSession, id_value: Any) -> bool:
        """Check if a record with this ID exists."""
        result = await db.execute(
            select(func.count(cls.model.id)).where(cls.model.id == id_value)
        )
        return (result.scalar() or 0) > 0

    @classmethod
    async def find_paginated(
        cls,
        db: AsyncSession,
        *,
        conditions: Sequence[Any] = (),
        page: int = 1,
        per_page: int = 50,
        eager_load: Optional[List] = None,
        order_by: Sequence[Any] = (),
    ) -> Tuple[List[ModelType], int]:
        """
        Find records with pagination and total count.

        Args:
            db: Database session
            conditions: SQL expressions combined with AND
            page: Page number (1-indexed)
            per_page: Items per page
            eager_load: List of relationships to eager load
            order_by: Columns to order by

        Returns:
            Tuple of (list of records, total count)
        """
        stmt = select(cls.model)
        count_stmt = select(func.count(cls.model.id)).select_from(cls.model)

        for condition in conditions:
            stmt = stmt.where(condition)
            count_stmt = count_stmt.where(condition)

        count_result = await db.execute(count_stmt)
        total = count_result.scalar() or 0

        if eager_load:
            for relationship in eager_load:
                stmt = stmt.options(selectinload(relationship))

        if order_by:
            stmt = stmt.order_by(*order_by)

        offset = (page - 1) * per_page
        stmt = stmt.offset(offset).limit(per_page)

        result = await db.execute(stmt)
        items = list(result.scalars().all())

        return items, total
