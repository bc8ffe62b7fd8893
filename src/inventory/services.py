import logging
from dataclasses import dataclass, field
from functools import partial
from datetime import timedelta
from decimal import Decimal
from typing import Any, Callable, Optional

from rapidfuzz import fuzz, process
from sqlalchemy import select, update, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.common.services import AppService
from src.common.utils import utcnow
from src.extraction.normalization import parse_number
from src.extraction.schemas import PendingStockUpdate
from src.inventory.exceptions import InvalidStockQuantityError, StockConflictError
from src.inventory.models import InventoryItem, MovementType, StockMovement
from src.inventory.normalization import normalize_item_name
from src.transactions.models import Transaction, TransactionType

logger = logging.getLogger(__name__)

MAX_UPDATE_ATTEMPTS = 3
ASSISTANT_REASON_MARKER = "via assistant"

_MOVEMENT_BY_ACTION = {
    "add_stock": MovementType.RESTOCK,
    "remove_stock": MovementType.SPOILAGE,
    "update_stock": MovementType.ADJUSTMENT,
}


def _to_decimal(value: Any) -> Decimal:
    return Decimal(str(parse_number(value, default=0.0)))


def _stock_target(action_type: str, quantity: Decimal, previous: Decimal) -> Decimal:
    if action_type == "add_stock":
        return previous + quantity
    if action_type == "remove_stock":
        return max(Decimal("0"), previous - quantity)
    return quantity


def stock_reason(data: PendingStockUpdate) -> str:
    """Reason text for an assistant-originated stock change (also the dedup key)."""
    quantity = f"{data.quantity:g}"
    return f"{data.action_type} {ASSISTANT_REASON_MARKER}: {quantity} {data.unit} {data.item_name}"


@dataclass
class StockConfirmResult:
    inventory_item: InventoryItem
    movement: Optional[StockMovement]
    duplicate: bool = False


@dataclass
class SaleEffectsResult:
    movements: list[StockMovement] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


class InventoryService(AppService[InventoryItem]):
    def __init__(self, session: AsyncSession):
        super().__init__(model=InventoryItem, session=session)

    async def find_by_normalized_name(self, user_id: int, name: str) -> Optional[InventoryItem]:
        """
        Resolve an item name to the user's inventory record.

        Exact normalized key first, then the closest normalized name scoring at
        least INVENTORY_FUZZY_THRESHOLD (rapidfuzz WRatio).
        """
        key = normalize_item_name(name)
        if not key:
            return None

        stmt = select(InventoryItem).where(
            InventoryItem.user_id == user_id,
            InventoryItem.normalized_name == key,
        )
        result = await self.session.execute(stmt)
        item = result.scalar_one_or_none()
        if item:
            return item

        names_stmt = select(InventoryItem.id, InventoryItem.normalized_name).where(InventoryItem.user_id == user_id)
        names = {row.id: row.normalized_name for row in (await self.session.execute(names_stmt)).all()}
        if not names:
            return None

        best = process.extractOne(
            key,
            names,
            scorer=fuzz.WRatio,
            score_cutoff=settings.INVENTORY_FUZZY_THRESHOLD,
        )
        if not best:
            return None

        matched_name, score, item_id = best
        logger.debug(f"Fuzzy inventory match '{key}' -> '{matched_name}' (score {score:.1f})")
        return await self.get_by_id(item_id)

    async def _compare_and_set(self, item: InventoryItem, previous: Decimal, new: Decimal) -> bool:
        """
        Write ``new`` only if the stored quantity still equals ``previous``.

        Same pattern as a lock acquisition: a single conditional UPDATE, success
        is decided by the affected row count.
        """
        stmt = (
            update(InventoryItem)
            .where(
                InventoryItem.id == item.id,
                InventoryItem.current_quantity == previous,
            )
            .values(current_quantity=new, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def _change_quantity(
        self,
        item: InventoryItem,
        compute_new: Callable[[Decimal], Optional[Decimal]],
    ) -> Optional[tuple[Decimal, Decimal]]:
        """
        Apply ``compute_new(previous)`` with compare-and-set, re-reading on conflict.

        Returns (previous, new), or None when ``compute_new`` declines the change
        or every attempt lost to a concurrent writer.
        """
        for attempt in range(MAX_UPDATE_ATTEMPTS):
            await self.session.refresh(item)
            previous = Decimal(item.current_quantity)
            new = compute_new(previous)
            if new is None:
                return None
            if await self._compare_and_set(item, previous, new):
                await self.session.refresh(item)
                return previous, new
            logger.info(f"Concurrent stock change on inventory {item.id}, retrying ({attempt + 1}/{MAX_UPDATE_ATTEMPTS})")
        return None

    async def _apply_sale_line(self, user_id: int, transaction_id: int, line: dict[str, Any], conversation_text: Optional[str]) -> Optional[StockMovement]:
        """Decrement one sold item; None when it has to be skipped."""
        name = line.get("name") or ""
        sold = _to_decimal(line.get("quantity"))

        item = await self.find_by_normalized_name(user_id, name)
        if item is None:
            logger.info(f"Sale {transaction_id}: no inventory record for '{name}', skipping")
            return None

        change = await self._change_quantity(
            item,
            lambda previous: previous - sold if previous >= sold else None,
        )
        if change is None:
            logger.info(
                f"Sale {transaction_id}: not enough stock of '{item.item_name}' "
                f"({item.current_quantity} < {sold}) or concurrent update, skipping"
            )
            return None

        previous, new = change
        movement = StockMovement(
            inventory_id=item.id,
            user_id=user_id,
            type=MovementType.SALE,
            quantity=new - previous,
            previous_quantity=previous,
            new_quantity=new,
            unit_price=_to_decimal(line.get("unitPrice")),
            reason=f"Sold via transaction {transaction_id}",
            raw_input=conversation_text,
        )
        self.session.add(movement)
        return movement

    async def apply_sale_effects(self, user_id: int, transaction: Transaction) -> SaleEffectsResult:
        """
        Decrement stock for every item of a confirmed sale.

        Items without a matching inventory record, with insufficient stock, or
        that keep losing the compare-and-set are skipped and logged. Each item
        runs in its own savepoint, so a database error on one item only undoes
        that item; the committed sale is never expired or touched here.
        """
        outcome = SaleEffectsResult()
        if transaction.type != TransactionType.SALE or not transaction.items:
            return outcome

        transaction_id = transaction.id
        conversation_text = transaction.conversation_text
        for line in list(transaction.items):
            name = line.get("name") or ""
            if _to_decimal(line.get("quantity")) <= 0:
                continue

            try:
                async with self.session.begin_nested():
                    movement = await self._apply_sale_line(user_id, transaction_id, line, conversation_text)
            except SQLAlchemyError as e:
                logger.warning(f"Sale {transaction_id}: inventory update for '{name}' failed: {str(e)}")
                movement = None

            try:
                await self.session.commit()
            except SQLAlchemyError as e:
                await self.session.rollback()
                logger.warning(f"Sale {transaction_id}: committing inventory update for '{name}' failed: {str(e)}")
                movement = None

            if movement is None:
                outcome.skipped.append(name)
            else:
                outcome.movements.append(movement)

        return outcome

    async def find_recent_stock_movement(self, user_id: int, reason: str) -> Optional[StockMovement]:
        cutoff = utcnow() - timedelta(seconds=settings.DEDUP_WINDOW_SECONDS)
        stmt = (
            select(StockMovement)
            .where(
                StockMovement.user_id == user_id,
                StockMovement.reason == reason,
                StockMovement.created_at >= cutoff,
            )
            .order_by(StockMovement.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _get_or_create_item(self, user_id: int, data: PendingStockUpdate, raw_input: Optional[str]) -> InventoryItem:
        item = await self.find_by_normalized_name(user_id, data.item_name)
        if item:
            return item

        item = InventoryItem(
            user_id=user_id,
            item_name=data.item_name,
            normalized_name=normalize_item_name(data.item_name),
            current_quantity=Decimal("0"),
            unit=data.unit,
            buying_price=_to_decimal(data.buying_price_per_unit),
            selling_price=_to_decimal(data.selling_price),
            supplier_name=data.supplier_name,
            raw_input=raw_input,
        )
        self.session.add(item)
        await self.session.flush()
        return item

    async def confirm_stock(
        self,
        user_id: int,
        data: PendingStockUpdate,
        raw_input: Optional[str] = None,
    ) -> StockConfirmResult:
        """
        Apply a confirmed stock command.

        Actions:
        - add_stock: quantity += q, restock movement (+q), prices/supplier/unit refreshed
        - remove_stock: quantity = max(0, current - q), spoilage movement (applied delta)
        - update_stock: quantity = q, adjustment movement (q - previous)

        An identical assistant command within DEDUP_WINDOW_SECONDS is a no-op
        returning the existing record with ``duplicate=True``.

        Raises:
            InvalidStockQuantityError: If quantity is not positive
        """
        if data.quantity <= 0:
            raise InvalidStockQuantityError(data.quantity)

        reason = stock_reason(data)
        existing = await self.find_recent_stock_movement(user_id, reason)
        if existing:
            logger.info(f"Duplicate stock confirmation for user {user_id}: {reason}")
            item = await self.get_by_id(existing.inventory_id)
            return StockConfirmResult(inventory_item=item, movement=existing, duplicate=True)

        quantity = _to_decimal(data.quantity)
        movement_type = _MOVEMENT_BY_ACTION[data.action_type]

        try:
            item = await self._get_or_create_item(user_id, data, raw_input)
            change = await self._change_quantity(item, partial(_stock_target, data.action_type, quantity))
            if change is None:
                raise StockConflictError(item.id)
            previous, new = change

            if data.action_type in ("add_stock", "update_stock"):
                item.unit = data.unit
                if data.buying_price_per_unit > 0:
                    item.buying_price = _to_decimal(data.buying_price_per_unit)
                if data.selling_price > 0:
                    item.selling_price = _to_decimal(data.selling_price)
            if data.action_type == "add_stock":
                if data.supplier_name:
                    item.supplier_name = data.supplier_name
                item.last_restocked_at = utcnow()

            movement = StockMovement(
                inventory_id=item.id,
                user_id=user_id,
                type=movement_type,
                quantity=new - previous,
                previous_quantity=previous,
                new_quantity=new,
                unit_price=item.buying_price or Decimal("0"),
                reason=reason,
                supplier_name=data.supplier_name,
                raw_input=raw_input,
            )
            self.session.add(movement)
            await self.session.commit()
            await self.session.refresh(item)
        except (SQLAlchemyError, StockConflictError):
            await self.session.rollback()
            raise

        logger.info(f"Stock {data.action_type} for user {user_id}: '{item.item_name}' {previous} -> {new}")
        return StockConfirmResult(inventory_item=item, movement=movement)

    async def get_movements(self, inventory_id: int, user_id: int, skip: int = 0, limit: int = 100) -> dict[str, Any]:
        await self.get_owned(inventory_id, user_id)

        count_stmt = select(func.count()).select_from(StockMovement).where(StockMovement.inventory_id == inventory_id)
        total = (await self.session.execute(count_stmt)).scalar() or 0
        stmt = (
            select(StockMovement)
            .where(StockMovement.inventory_id == inventory_id)
            .order_by(StockMovement.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return {"items": result.scalars().all(), "total": total, "skip": skip, "limit": limit}
