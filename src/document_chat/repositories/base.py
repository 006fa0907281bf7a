"""Base repository class with common CRUD operations."""

import logging
from typing import Generic, List, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from document_chat.database.models import Base
from document_chat.utils.errors import DatabaseError

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Base repository with common CRUD operations."""

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            session: Async database session
        """
        self.model = model
        self.session = session

    async def get_by_id(self, id: str) -> Optional[ModelType]:
        """Get a record by ID, or None if not found."""
        try:
            result = await self.session.execute(select(self.model).where(self.model.id == id))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting {self.model.__name__} by ID {id}: {e}")
            raise DatabaseError(f"Failed to retrieve {self.model.__name__}") from e

    async def get_owned(self, id: str, user_id: str) -> Optional[ModelType]:
        """Get a record by ID only if it belongs to ``user_id``."""
        try:
            result = await self.session.execute(
                select(self.model).where(self.model.id == id, self.model.user_id == user_id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting {self.model.__name__} {id} for user {user_id}: {e}")
            raise DatabaseError(f"Failed to retrieve {self.model.__name__}") from e

    async def list_owned(self, user_id: str, skip: int = 0, limit: int = 100) -> List[ModelType]:
        """List a user's records, newest first."""
        try:
            query = (
                select(self.model)
                .where(self.model.user_id == user_id)
                .order_by(self.model.created_at.desc())
                .offset(skip)
                .limit(limit)
            )
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error listing {self.model.__name__} for user {user_id}: {e}")
            raise DatabaseError(f"Failed to retrieve {self.model.__name__} records") from e

    async def create(self, **kwargs) -> ModelType:
        """Create a new record."""
        try:
            instance = self.model(**kwargs)
            self.session.add(instance)
            await self.session.flush()
            await self.session.refresh(instance)
            logger.debug(f"Created {self.model.__name__} with ID: {instance.id}")
            return instance
        except SQLAlchemyError as e:
            logger.error(f"Error creating {self.model.__name__}: {e}")
            await self.session.rollback()
            raise DatabaseError(f"Failed to create {self.model.__name__}") from e

    async def update(self, instance: ModelType, **kwargs) -> ModelType:
        """Apply field updates to a loaded instance."""
        try:
            for field, value in kwargs.items():
                if hasattr(instance, field):
                    setattr(instance, field, value)
            await self.session.flush()
            await self.session.refresh(instance)
            logger.debug(f"Updated {self.model.__name__} with ID: {instance.id}")
            return instance
        except SQLAlchemyError as e:
            logger.error(f"Error updating {self.model.__name__} with ID {instance.id}: {e}")
            await self.session.rollback()
            raise DatabaseError(f"Failed to update {self.model.__name__}") from e

    async def delete(self, instance: ModelType) -> None:
        """Delete a loaded instance."""
        try:
            await self.session.delete(instance)
            await self.session.flush()
            logger.debug(f"Deleted {self.model.__name__} with ID: {instance.id}")
        except SQLAlchemyError as e:
            logger.error(f"Error deleting {self.model.__name__} with ID {instance.id}: {e}")
            await self.session.rollback()
            raise DatabaseError(f"Failed to delete {self.model.__name__}") from e
