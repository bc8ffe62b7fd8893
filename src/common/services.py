from typing import Any, TypeVar, Generic, Type

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from src.common.exceptions import ResourceAccessDeniedError, ResourceNotFoundError


ModelType = TypeVar("ModelType")

class AppService(Generic[ModelType]):
    """
    Base service class that provides common functionality
    like session management and per-user ownership checks.

    Every model handled here carries ``id`` and ``user_id`` columns.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    async def get_by_id(self, id: int) -> ModelType:
        stmt = select(self.model).where(self.model.id == id)
        result = await self.session.execute(stmt)
        obj = result.scalar_one_or_none()

        if not obj:
            raise ResourceNotFoundError(self.model.__name__, id)

        return obj

    async def get_owned(self, id: int, user_id: int) -> ModelType:
        """
        Fetch a record and verify it belongs to ``user_id``.

        Raises:
            ResourceNotFoundError: If the record doesn't exist
            ResourceAccessDeniedError: If the record belongs to another user
        """
        obj = await self.get_by_id(id)
        if obj.user_id != user_id:
            raise ResourceAccessDeniedError(self.model.__name__, id)
        return obj

    async def get_all_for_user(self, user_id: int, skip: int = 0, limit: int = 100) -> dict[str, Any]:
        count_stmt = select(func.count()).select_from(self.model).where(self.model.user_id == user_id)
        count_result = await self.session.execute(count_stmt)
        total = count_result.scalar() or 0
        stmt = (
            select(self.model)
            .where(self.model.user_id == user_id)
            .offset(skip)
            .limit(limit)
            .order_by(self.model.id.desc())
        )
        result = await self.session.execute(stmt)
        return {"items": result.scalars().all(), "total": total, "skip": skip, "limit": limit}
