"""
Integration tests for transaction confirmation (dedup gate, status, catalog
resolution) and the inventory side effects of confirmed sales.
"""
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from src.chat.schemas import ConfirmTransactionRequest
from src.chat.services import ChatService
from src.common.utils import utcnow
from src.customers.models import Customer
from src.inventory.models import InventoryItem, MovementType, StockMovement
from src.items.models import Item
from src.transactions.models import Transaction, TransactionStatus, TransactionType
from src.transactions.schemas import TransactionConfirmData
from src.transactions.services import TransactionService

USER_ID = 1


def _sale(amount=50.0, items=None, **extra) -> TransactionConfirmData:
    return TransactionConfirmData.model_validate({
        "type": "sale",
        "amount": amount,
        "items": items if items is not None else [
            {"name": "tomatoes", "quantity": 10, "unit": "pieces", "unitPrice": 5, "totalPrice": 50},
        ],
        "userMessage": "I sold 10 tomatoes for 5 shillings each",
        **extra,
    })


async def _count(session: AsyncSession, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar()


async def _stock(session: AsyncSession, name: str, quantity: str) -> InventoryItem:
    item = InventoryItem(
        user_id=USER_ID,
        item_name=name,
        normalized_name=name,
        current_quantity=Decimal(quantity),
        unit="pieces",
    )
    session.add(item)
    await session.commit()
    return item


class TestConfirmTransaction:

    async def test_sale_is_paid_and_items_are_linked_to_catalog(self, test_db_session: AsyncSession):
        service = TransactionService(test_db_session)

        result = await service.confirm(USER_ID, _sale(customerName="Mama Njeri"))

        transaction = result.transaction
        assert result.duplicate is False
        assert transaction.type == TransactionType.SALE
        assert transaction.status == TransactionStatus.PAID
        assert transaction.amount == Decimal("50.00")
        assert transaction.conversation_text == "I sold 10 tomatoes for 5 shillings each"

        catalog_item = (await test_db_session.execute(select(Item))).scalar_one()
        assert transaction.items[0]["itemId"] == catalog_item.id
        assert catalog_item.name == "tomatoes"

        customer = (await test_db_session.execute(select(Customer))).scalar_one()
        assert transaction.customer_id == customer.id
        assert transaction.customer_name == "Mama Njeri"

    @pytest.mark.parametrize(
        "transaction_type,expected_status",
        [
            ("debt", TransactionStatus.UNPAID),
            ("loan", TransactionStatus.UNPAID),
            ("expense", TransactionStatus.PAID),
            ("purchase", TransactionStatus.PAID),
        ],
    )
    async def test_status_by_type(self, test_db_session: AsyncSession, transaction_type, expected_status):
        data = TransactionConfirmData(type=transaction_type, amount=300, items=[])

        result = await TransactionService(test_db_session).confirm(USER_ID, data)

        assert result.transaction.status == expected_status

    async def test_identical_confirmation_within_window_is_a_duplicate(self, test_db_session: AsyncSession):
        service = TransactionService(test_db_session)

        first = await service.confirm(USER_ID, _sale())
        second = await service.confirm(USER_ID, _sale())

        assert second.duplicate is True
        assert second.transaction.id == first.transaction.id
        assert await _count(test_db_session, Transaction) == 1

    async def test_different_amount_type_or_user_is_not_a_duplicate(self, test_db_session: AsyncSession):
        service = TransactionService(test_db_session)

        await service.confirm(USER_ID, _sale())
        by_amount = await service.confirm(USER_ID, _sale(amount=60.0))
        by_type = await service.confirm(USER_ID, TransactionConfirmData(type="expense", amount=50, items=[]))
        by_user = await service.confirm(2, _sale())

        assert not by_amount.duplicate
        assert not by_type.duplicate
        assert not by_user.duplicate
        assert await _count(test_db_session, Transaction) == 4

    async def test_confirmation_after_window_is_recorded(self, test_db_session: AsyncSession):
        test_db_session.add(Transaction(
            user_id=USER_ID,
            type=TransactionType.SALE,
            amount=Decimal("50.00"),
            items=[],
            status=TransactionStatus.PAID,
            created_at=utcnow() - timedelta(seconds=60),
        ))
        await test_db_session.commit()

        result = await TransactionService(test_db_session).confirm(USER_ID, _sale(items=[]))

        assert result.duplicate is False
        assert await _count(test_db_session, Transaction) == 2

    async def test_date_becomes_occurred_at(self, test_db_session: AsyncSession):
        result = await TransactionService(test_db_session).confirm(USER_ID, _sale(date="2024-05-01"))

        assert result.transaction.occurred_at.date().isoformat() == "2024-05-01"


class TestSaleInventoryEffects:

    async def test_sale_decrements_stock_and_records_movement(self, test_db_session: AsyncSession):
        item = await _stock(test_db_session, "tomatoes", "20")

        result = await TransactionService(test_db_session).confirm(USER_ID, _sale())

        await test_db_session.refresh(item)
        assert item.current_quantity == Decimal("10")
        assert len(result.movements) == 1
        movement = result.movements[0]
        assert movement.type == MovementType.SALE
        assert movement.quantity == Decimal("-10")
        assert movement.previous_quantity == Decimal("20")
        assert movement.new_quantity == Decimal("10")
        assert movement.reason == f"Sold via transaction {result.transaction.id}"

    async def test_insufficient_stock_is_skipped_but_sale_is_kept(self, test_db_session: AsyncSession):
        item = await _stock(test_db_session, "tomatoes", "5")

        result = await TransactionService(test_db_session).confirm(USER_ID, _sale())

        await test_db_session.refresh(item)
        assert item.current_quantity == Decimal("5")
        assert result.movements == []
        assert await _count(test_db_session, StockMovement) == 0
        assert await _count(test_db_session, Transaction) == 1

    async def test_unknown_item_is_skipped(self, test_db_session: AsyncSession):
        await _stock(test_db_session, "tomatoes", "20")
        items = [{"name": "mangoes", "quantity": 2, "unit": "pieces", "unitPrice": 25, "totalPrice": 50}]

        result = await TransactionService(test_db_session).confirm(USER_ID, _sale(items=items))

        assert result.movements == []

    async def test_fuzzy_name_match(self, test_db_session: AsyncSession):
        item = await _stock(test_db_session, "maize flour", "8")
        items = [{"name": "maize flor", "quantity": 3, "unit": "bags", "unitPrice": 10, "totalPrice": 30}]

        result = await TransactionService(test_db_session).confirm(USER_ID, _sale(amount=30.0, items=items))

        await test_db_session.refresh(item)
        assert item.current_quantity == Decimal("5")
        assert len(result.movements) == 1

    async def test_swahili_item_name_matches_english_inventory(self, test_db_session: AsyncSession):
        item = await _stock(test_db_session, "tomatoes", "12")
        items = [{"name": "nyanya", "quantity": 10, "unit": "pieces", "unitPrice": 20, "totalPrice": 200}]

        await TransactionService(test_db_session).confirm(USER_ID, _sale(amount=200.0, items=items))

        await test_db_session.refresh(item)
        assert item.current_quantity == Decimal("2")

    async def test_non_sale_does_not_touch_stock(self, test_db_session: AsyncSession):
        item = await _stock(test_db_session, "tomatoes", "20")
        data = TransactionConfirmData.model_validate({
            "type": "purchase",
            "amount": 100,
            "items": [{"name": "tomatoes", "quantity": 10, "unitPrice": 10, "totalPrice": 100}],
        })

        result = await TransactionService(test_db_session).confirm(USER_ID, data)

        await test_db_session.refresh(item)
        assert item.current_quantity == Decimal("20")
        assert result.movements == []

    async def test_stock_changed_concurrently_is_re_read(self, test_db_session: AsyncSession, monkeypatch):
        item = await _stock(test_db_session, "tomatoes", "20")
        service = TransactionService(test_db_session)
        original = service.inventory_service._compare_and_set
        attempts = []

        async def racing_compare_and_set(target, previous, new):
            attempts.append(previous)
            if len(attempts) == 1:
                # another request sells 4 between our read and our write
                await test_db_session.execute(
                    InventoryItem.__table__.update()
                    .where(InventoryItem.id == target.id)
                    .values(current_quantity=Decimal("16"))
                )
            return await original(target, previous, new)

        monkeypatch.setattr(service.inventory_service, "_compare_and_set", racing_compare_and_set)

        result = await service.confirm(USER_ID, _sale())

        await test_db_session.refresh(item)
        assert attempts == [Decimal("20"), Decimal("16")]
        assert item.current_quantity == Decimal("6")
        assert result.movements[0].previous_quantity == Decimal("16")

    async def test_database_error_during_stock_update_keeps_the_sale(self, test_db_session: AsyncSession, monkeypatch):
        item = await _stock(test_db_session, "tomatoes", "20")
        service = TransactionService(test_db_session)

        async def failing_compare_and_set(target, previous, new):
            raise OperationalError("UPDATE inventory_items", {}, Exception("connection lost"))

        monkeypatch.setattr(service.inventory_service, "_compare_and_set", failing_compare_and_set)

        result = await service.confirm(USER_ID, _sale())

        assert result.duplicate is False
        assert result.movements == []
        assert result.transaction.id is not None
        assert result.transaction.type == TransactionType.SALE
        assert await _count(test_db_session, Transaction) == 1
        assert await _count(test_db_session, StockMovement) == 0
        await test_db_session.refresh(item)
        assert item.current_quantity == Decimal("20")

    async def test_failing_item_does_not_block_the_others(self, test_db_session: AsyncSession, monkeypatch):
        await _stock(test_db_session, "tomatoes", "20")
        onions = await _stock(test_db_session, "onions", "10")
        service = TransactionService(test_db_session)
        original = service.inventory_service._compare_and_set

        async def failing_for_tomatoes(target, previous, new):
            if target.normalized_name == "tomatoes":
                raise OperationalError("UPDATE inventory_items", {}, Exception("lock timeout"))
            return await original(target, previous, new)

        monkeypatch.setattr(service.inventory_service, "_compare_and_set", failing_for_tomatoes)

        result = await service.confirm(USER_ID, _sale(amount=80, items=[
            {"name": "tomatoes", "quantity": 10, "unitPrice": 5, "totalPrice": 50},
            {"name": "onions", "quantity": 3, "unitPrice": 10, "totalPrice": 30},
        ]))

        await test_db_session.refresh(onions)
        assert onions.current_quantity == Decimal("7")
        assert [m.inventory_id for m in result.movements] == [onions.id]

    async def test_chat_confirmation_succeeds_when_stock_update_fails(
        self, test_db_session: AsyncSession, offline_llm, monkeypatch
    ):
        await _stock(test_db_session, "tomatoes", "20")
        chat = ChatService(test_db_session, offline_llm)

        async def failing_compare_and_set(target, previous, new):
            raise OperationalError("UPDATE inventory_items", {}, Exception("connection lost"))

        monkeypatch.setattr(chat.inventory_service, "_compare_and_set", failing_compare_and_set)

        response = await chat.confirm_transaction(
            USER_ID, ConfirmTransactionRequest(transaction_data=_sale())
        )

        assert response.success is True
        assert response.duplicate is False
        assert response.transaction.amount == 50.0
