from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.common.services import AppService
from src.customers.models import Customer


class CustomerService(AppService[Customer]):
    def __init__(self, session: AsyncSession):
        super().__init__(model=Customer, session=session)

    async def get_by_name(self, user_id: int, name: str) -> Optional[Customer]:
        stmt = select(Customer).where(Customer.user_id == user_id, Customer.name == name)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(self, user_id: int, name: str) -> Customer:
        """Exact-name lookup per user; new customers are flushed, not committed."""
        customer = await self.get_by_name(user_id, name)
        if customer:
            return customer

        customer = Customer(user_id=user_id, name=name)
        self.session.add(customer)
        await self.session.flush()
        return customer
