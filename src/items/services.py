from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.common.services import AppService
from src.items.models import Item


class ItemService(AppService[Item]):
    def __init__(self, session: AsyncSession):
        super().__init__(model=Item, session=session)

    async def get_by_name(self, user_id: int, name: str) -> Optional[Item]:
        stmt = select(Item).where(Item.user_id == user_id, Item.name == name)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(self, user_id: int, name: str, unit: str = "unit", price: float = 0.0) -> Item:
        """
        Resolve a catalog item by exact name, creating it on first use.

        The caller owns the unit of work: new rows are flushed so they get an
        id, committing is left to the confirmation that triggered them.
        """
        item = await self.get_by_name(user_id, name)
        if item:
            return item

        item = Item(user_id=user_id, name=name, unit=unit or "unit", price=Decimal(str(price or 0)))
        self.session.add(item)
        await self.session.flush()
        return item
