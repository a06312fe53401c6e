"""
Base repository with common CRUD operations.
"""

import logging
from typing import Generic, TypeVar, Type, Optional, List, Any, Dict, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import Select
from pydantic import BaseModel

from core.database import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)

logger = logging.getLogger(__name__)


class BaseRepository(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """Base repository with common CRUD operations."""

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    def _apply_filters(self, query: Select, filters: Optional[Dict[str, Any]]) -> Select:
        if filters:
            for field, value in filters.items():
                if hasattr(self.model, field):
                    query = query.where(getattr(self.model, field) == value)
        if hasattr(self.model, "deleted_at"):
            query = query.where(self.model.deleted_at.is_(None))
        return query

    async def get(self, id: Any) -> Optional[ModelType]:
        """Get a single record by ID."""
        query = self._apply_filters(select(self.model).where(self.model.id == id), None)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def paginate(self, query: Select, page: int, per_page: int) -> Tuple[List[Any], int]:
        """Run ``query`` for one page and return ``(rows, total)``."""
        total_query = select(func.count()).select_from(query.order_by(None).subquery())
        total = (await self.db.execute(total_query)).scalar_one()
        result = await self.db.execute(query.offset((page - 1) * per_page).limit(per_page))
        return list(result.scalars().all()), total

    async def create(self, obj_in: CreateSchemaType | Dict[str, Any]) -> ModelType:
        """Create a new record."""
        data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump()
        try:
            db_obj = self.model(**data)
            self.db.add(db_obj)
            await self.db.commit()
            await self.db.refresh(db_obj)
            return db_obj
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Database error creating {self.model.__name__}: {str(e)}")
            raise

    async def update(
        self,
        db_obj: ModelType,
        obj_in: UpdateSchemaType | Dict[str, Any]
    ) -> ModelType:
        """Update an existing record."""
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)

        try:
            for field, value in update_data.items():
                setattr(db_obj, field, value)

            self.db.add(db_obj)
            await self.db.commit()
            await self.db.refresh(db_obj)
            return db_obj
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Database error updating {self.model.__name__}: {str(e)}")
            raise

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count records with optional filters."""
        query = self._apply_filters(select(func.count()).select_from(self.model), filters)
        result = await self.db.execute(query)
        return result.scalar_one()

    async def exists(self, id: Any) -> bool:
        """Check if a record exists by ID."""
        return await self.get(id) is not None
