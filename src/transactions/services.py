import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.common.services import AppService
from src.common.utils import utcnow
from src.customers.services import CustomerService
from src.inventory.models import StockMovement
from src.inventory.services import InventoryService
from src.items.services import ItemService
from src.transactions.models import Transaction, TransactionStatus, TransactionType
from src.transactions.schemas import TransactionConfirmData, TransactionUpdate

logger = logging.getLogger(__name__)

UNPAID_TYPES = (TransactionType.DEBT, TransactionType.LOAN)


def _occurred_at(raw_date: Optional[str]) -> datetime:
    """Midnight UTC of an ISO date, or now when missing/invalid."""
    if raw_date:
        try:
            return datetime.combine(date.fromisoformat(raw_date[:10]), time.min, tzinfo=timezone.utc)
        except ValueError:
            logger.debug(f"Ignoring unparsable transaction date '{raw_date}'")
    return utcnow()


@dataclass
class ConfirmResult:
    transaction: Transaction
    duplicate: bool = False
    movements: list[StockMovement] = field(default_factory=list)


class TransactionService(AppService[Transaction]):
    def __init__(
        self,
        session: AsyncSession,
        customer_service: Optional[CustomerService] = None,
        item_service: Optional[ItemService] = None,
        inventory_service: Optional[InventoryService] = None,
    ):
        super().__init__(model=Transaction, session=session)
        self.customer_service = customer_service or CustomerService(session)
        self.item_service = item_service or ItemService(session)
        self.inventory_service = inventory_service or InventoryService(session)

    async def find_recent_duplicate(
        self,
        user_id: int,
        transaction_type: TransactionType,
        amount: Decimal,
    ) -> Optional[Transaction]:
        """Same user, type and amount created within DEDUP_WINDOW_SECONDS."""
        cutoff = utcnow() - timedelta(seconds=settings.DEDUP_WINDOW_SECONDS)
        stmt = (
            select(Transaction)
            .where(
                Transaction.user_id == user_id,
                Transaction.type == transaction_type,
                Transaction.amount == amount,
                Transaction.created_at >= cutoff,
            )
            .order_by(Transaction.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def confirm(self, user_id: int, data: TransactionConfirmData) -> ConfirmResult:
        """
        Persist a pending transaction the user confirmed.

        Steps:
        1. Dedup: an identical (type, amount) transaction from the last
           DEDUP_WINDOW_SECONDS is returned with ``duplicate=True``
        2. Resolve or create the customer and every catalog item
        3. Persist (debt/loan unpaid, everything else paid) and commit
        4. For sales, decrement inventory; problems there never undo step 3

        The duplicate check and the insert are not serialized: two concurrent
        confirmations can both pass step 1.
        """
        transaction_type = TransactionType(data.type)
        amount = Decimal(str(data.amount)).quantize(Decimal("0.01"))

        duplicate = await self.find_recent_duplicate(user_id, transaction_type, amount)
        if duplicate:
            logger.info(f"Duplicate {transaction_type.value} of {amount} for user {user_id} (transaction {duplicate.id})")
            return ConfirmResult(transaction=duplicate, duplicate=True)

        customer = None
        customer_name = (data.customer_name or "").strip() or None
        if customer_name:
            customer = await self.customer_service.get_or_create(user_id, customer_name)

        items = []
        for line in data.items:
            catalog_item = await self.item_service.get_or_create(
                user_id,
                line.name,
                unit=line.unit,
                price=line.unit_price,
            )
            items.append({
                "name": line.name,
                "quantity": line.quantity,
                "unit": line.unit,
                "unitPrice": line.unit_price,
                "totalPrice": line.total_price,
                "itemId": catalog_item.id,
            })

        transaction = Transaction(
            user_id=user_id,
            type=transaction_type,
            amount=amount,
            items=items,
            customer_id=customer.id if customer else None,
            customer_name=customer_name,
            occurred_at=_occurred_at(data.date),
            status=TransactionStatus.UNPAID if transaction_type in UNPAID_TYPES else TransactionStatus.PAID,
            conversation_text=data.conversation_text or data.user_message or "",
            extracted_data=data.extracted_data,
        )

        # Persistence (Unit of Work)
        self.session.add(transaction)

        try:
            await self.session.commit()
            await self.session.refresh(transaction)
        except IntegrityError as e:
            await self.session.rollback()
            raise e

        transaction_id = transaction.id
        logger.info(f"Recorded {transaction_type.value} {transaction_id} of {amount} for user {user_id}")

        movements: list[StockMovement] = []
        if transaction_type == TransactionType.SALE and items:
            try:
                effects = await self.inventory_service.apply_sale_effects(user_id, transaction)
                movements = effects.movements
            except Exception as e:
                logger.error(f"Inventory update after sale {transaction_id} failed: {str(e)}", exc_info=True)

            # A rollback in the side effects expires the already committed row
            if inspect(transaction).expired_attributes:
                await self.session.refresh(transaction)

        return ConfirmResult(transaction=transaction, movements=movements)

    async def get_debts(self, user_id: int, skip: int = 0, limit: int = 20) -> dict[str, Any]:
        """Unpaid debts and loans of the user, most recent first."""
        conditions = (
            Transaction.user_id == user_id,
            Transaction.type.in_(UNPAID_TYPES),
            Transaction.status == TransactionStatus.UNPAID,
        )
        total = (await self.session.execute(select(func.count()).select_from(Transaction).where(*conditions))).scalar() or 0
        stmt = (
            select(Transaction)
            .where(*conditions)
            .order_by(Transaction.occurred_at.desc(), Transaction.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return {"items": result.scalars().all(), "total": total, "skip": skip, "limit": limit}

    async def update(self, transaction_id: int, user_id: int, data: TransactionUpdate) -> Transaction:
        """
        Update a transaction with user ownership check.

        Renaming the customer re-links the transaction to that customer
        (created when missing).

        Raises:
            ResourceNotFoundError: If the transaction doesn't exist
            ResourceAccessDeniedError: If it belongs to another user
        """
        transaction = await self.get_owned(transaction_id, user_id)

        update_data = data.model_dump(exclude_unset=True)
        if not update_data:
            return transaction

        if update_data.get("status") is not None:
            transaction.status = update_data["status"]
        if update_data.get("customer_name"):
            customer = await self.customer_service.get_or_create(user_id, update_data["customer_name"])
            transaction.customer_name = customer.name
            transaction.customer_id = customer.id

        try:
            await self.session.commit()
            await self.session.refresh(transaction)
        except IntegrityError as e:
            await self.session.rollback()
            raise e

        logger.info(f"Updated transaction {transaction_id} for user {user_id}: {sorted(update_data)}")
        return transaction
