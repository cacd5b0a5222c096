"""
Base Repository.

Base class for all repositories with common CRUD operations.
"""

from collections.abc import Iterable
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.exceptions import NotFoundError
from crm.backend.core.logging import get_logger
from crm.backend.models.base import Base

logger = get_logger(__name__)

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository with common CRUD operations.

    Subclasses should set the model class:

        class ClientRepository(BaseRepository[Client]):
            model = Client
    """

    model: type[ModelType]

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, id: str | UUID) -> ModelType:
        """
        Get a single record by ID.

        Raises:
            NotFoundError: If record not found
        """
        instance = await self.get_by_id_or_none(id)
        if instance is None:
            raise NotFoundError(f"{self.model.__name__} not found")
        return instance

    async def get_by_id_or_none(self, id: str | UUID) -> ModelType | None:
        """Get a single record by ID, returning None if not found."""
        result = await self.session.execute(
            select(self.model).where(self.model.id == str(id))
        )
        return result.scalar_one_or_none()

    async def get_many(self, ids: Iterable[str | UUID]) -> dict[str, ModelType]:
        """Load records by ID. Missing IDs are simply absent from the mapping."""
        id_list = [str(i) for i in ids]
        if not id_list:
            return {}
        result = await self.session.execute(
            select(self.model).where(self.model.id.in_(id_list))
        )
        return {row.id: row for row in result.scalars().all()}

    async def create(self, **kwargs: Any) -> ModelType:
        """Create a new record."""
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def update(self, id: str | UUID, **kwargs: Any) -> ModelType:
        """
        Update an existing record.

        Raises:
            NotFoundError: If record not found
        """
        instance = await self.get_by_id(id)
        return await self.apply(instance, **kwargs)

    async def apply(self, instance: ModelType, **kwargs: Any) -> ModelType:
        """Set attributes on an already loaded record and flush."""
        for key, value in kwargs.items():
            if hasattr(instance, key):
                setattr(instance, key, value)

        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def delete(self, id: str | UUID) -> None:
        """
        Delete a record by ID.

        Raises:
            NotFoundError: If record not found
        """
        instance = await self.get_by_id(id)
        await self.session.delete(instance)
        await self.session.flush()

    async def delete_many(self, ids: Iterable[str | UUID]) -> int:
        """Delete records by ID in one statement. Returns rows deleted."""
        id_list = [str(i) for i in ids]
        if not id_list:
            return 0
        result = await self.session.execute(
            delete(self.model)
            .where(self.model.id.in_(id_list))
            .execution_options(synchronize_session="fetch")
        )
        await self.session.flush()
        return result.rowcount

    async def exists(self, id: str | UUID) -> bool:
        """Check if a record exists by ID."""
        result = await self.session.execute(
            select(self.model.id).where(self.model.id == str(id))
        )
        return result.scalar_one_or_none() is not None

    async def count(self, *criteria: Any) -> int:
        """Count records matching optional where-criteria."""
        stmt = select(func.count()).select_from(self.model)
        if criteria:
            stmt = stmt.where(*criteria)
        result = await self.session.execute(stmt)
        return result.scalar_one()
