"""Base repository pattern implementation for database operations.

Domain repositories subclass ``BaseRepository`` and add the queries their
services need (membership lookups, invoice listings, connection scans).
"""

from collections.abc import Mapping
from typing import Any

from loguru import logger
from sqlalchemy import ColumnElement, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database.base import BaseModel


class BaseRepository[T: BaseModel]:
    """Generic async CRUD over a single model class.

    Args:
        session: The async SQLAlchemy session to use for operations.
        model_class: The SQLAlchemy model class this repository manages.

    Example:
        class TentRepository(BaseRepository[Tent]):
            def __init__(self, session: AsyncSession) -> None:
                super().__init__(session, Tent)
    """

    def __init__(self, session: AsyncSession, model_class: type[T]) -> None:
        self.session = session
        self.model_class = model_class

    def _conditions(self, filters: Mapping[str, Any]) -> list[ColumnElement[bool]]:
        conditions = []
        for field, value in filters.items():
            if not hasattr(self.model_class, field):
                logger.warning(
                    "Attempted to filter by non-existent field '{}' on {}",
                    field,
                    self.model_class.__name__,
                )
                continue
            conditions.append(getattr(self.model_class, field) == value)
        return conditions

    async def get_by_id(self, entity_id: int) -> T | None:
        """Retrieve a model instance by its ID.

        Args:
            entity_id: The primary key ID of the model to retrieve.

        Returns:
            T | None: The model instance if found, None otherwise.
        """
        logger.debug("Fetching {} by ID: {}", self.model_class.__name__, entity_id)
        return await self.session.get(self.model_class, entity_id)

    async def create(self, obj: T) -> T:
        """Persist a new instance and load server-generated values.

        Args:
            obj: The model instance to create.

        Returns:
            T: The created model instance with populated ID and timestamps.
        """
        self.session.add(obj)
        await self.session.flush()
        await self.session.refresh(obj)

        logger.info(
            "Created {} instance with ID: {}", self.model_class.__name__, obj.id
        )
        return obj

    async def update(self, obj: T, data: Mapping[str, object]) -> T:
        """Apply a partial update to an already loaded instance.

        Unknown keys are logged and skipped.

        Args:
            obj: The instance to modify.
            data: Field values to set.

        Returns:
            T: The refreshed instance.
        """
        for key, value in data.items():
            if hasattr(obj, key):
                setattr(obj, key, value)
            else:
                logger.warning(
                    "Attempted to update non-existent field '{}' on {}",
                    key,
                    self.model_class.__name__,
                )

        await self.session.flush()
        await self.session.refresh(obj)

        logger.info(
            "Updated {} instance ID {} - fields: {}",
            self.model_class.__name__,
            obj.id,
            list(data.keys()),
        )
        return obj

    async def delete(self, obj: T) -> None:
        """Delete a loaded instance."""
        entity_id = obj.id
        await self.session.delete(obj)
        await self.session.flush()
        logger.info(
            "Deleted {} instance with ID: {}", self.model_class.__name__, entity_id
        )

    async def count(self, **filters: object) -> int:
        """Count instances matching all given field values."""
        stmt = (
            select(func.count())
            .select_from(self.model_class)
            .where(*self._conditions(filters))
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def filter_by(self, **filters: object) -> list[T]:
        """Return all instances matching the given field values, oldest first."""
        stmt = (
            select(self.model_class)
            .where(*self._conditions(filters))
            .order_by(self.model_class.id)
        )
        result = await self.session.execute(stmt)
        instances = list(result.scalars().all())

        logger.debug(
            "Filtered {} - found {} instances with filters: {}",
            self.model_class.__name__,
            len(instances),
            filters,
        )
        return instances

    async def find_one_by(self, **filters: object) -> T | None:
        """Return the first instance matching the given field values."""
        stmt = (
            select(self.model_class)
            .where(*self._conditions(filters))
            .order_by(self.model_class.id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
