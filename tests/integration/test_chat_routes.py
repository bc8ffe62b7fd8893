"""
Integration tests for the chat, transaction, inventory and health endpoints.
"""
import json

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from main import app
from src.ai.dependencies import get_llm_client
from src.chat.models import AIUsage, ChatMessage
from src.extraction.prompts import (
    APOLOGY_REPLY,
    ASSISTANT_PROMPT,
    MESSAGE_CLASSIFIER_PROMPT,
    STOCK_EXTRACTION_PROMPT,
    TRANSACTION_EXTRACTION_PROMPT,
)

SALE_MESSAGE = "I sold 10 tomatoes for 5 shillings each"

SALE_EXTRACTION = json.dumps({
    "transactionType": "sale",
    "items": [{"name": "tomatoes", "quantity": 10, "unit": "pieces", "unitPrice": 5}],
    "totalAmount": 50,
    "paymentStatus": "paid",
    "confidence": 0.95,
})


def scripted_responder(message: str, prompt: str):
    if prompt == ASSISTANT_PROMPT:
        return "Got it!"
    if prompt == TRANSACTION_EXTRACTION_PROMPT:
        return SALE_EXTRACTION
    if prompt == MESSAGE_CLASSIFIER_PROMPT:
        return "transaction"
    if prompt == STOCK_EXTRACTION_PROMPT:
        return "{}"
    raise AssertionError(f"unexpected prompt for {message!r}")


def sale_payload(**overrides) -> dict:
    data = {
        "type": "sale",
        "amount": 50,
        "items": [{"name": "tomatoes", "quantity": 10, "unit": "pieces", "unitPrice": 5, "totalPrice": 50}],
        "userMessage": SALE_MESSAGE,
    }
    data.update(overrides)
    return {"transactionData": data}


class TestAuthentication:

    @pytest.mark.parametrize("headers", [{}, {"X-User-Id": "abc"}, {"X-User-Id": "0"}])
    async def test_requests_without_identity_are_rejected(self, client: AsyncClient, headers):
        response = await client.post("/api/chat/message", json={"text": "hi"}, headers=headers)

        assert response.status_code == 401


class TestSendMessage:

    @pytest.mark.parametrize("text", ["", "   "])
    async def test_empty_message_is_rejected(self, client: AsyncClient, auth_headers, text):
        response = await client.post("/api/chat/message", json={"text": text}, headers=auth_headers)

        assert response.status_code == 400

    async def test_offline_sale_still_yields_pending_transaction(
        self, client: AsyncClient, auth_headers, test_db_session: AsyncSession
    ):
        response = await client.post("/api/chat/message", json={"text": SALE_MESSAGE}, headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["reply"] == APOLOGY_REPLY
        assert body["conversationId"]
        pending = body["pendingTransaction"]
        assert pending["type"] == "sale"
        assert pending["amount"] == 50.0
        assert pending["items"][0]["name"] == "tomatoes"
        assert pending["userMessage"] == SALE_MESSAGE
        assert body["pendingStock"] is None

        messages = (await test_db_session.execute(select(ChatMessage).order_by(ChatMessage.id))).scalars().all()
        assert [m.sender for m in messages] == ["user", "ai"]
        assert messages[0].message == SALE_MESSAGE
        assert messages[1].message == APOLOGY_REPLY

        usage = (await test_db_session.execute(select(AIUsage))).scalar_one()
        assert usage.success is False
        assert usage.error_message

    async def test_small_talk_has_no_pending_transaction(self, client: AsyncClient, auth_headers):
        response = await client.post("/api/chat/message", json={"text": "How are you?"}, headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["pendingTransaction"] is None

    async def test_scripted_model_reply_and_history(
        self, client: AsyncClient, auth_headers, stub_llm_factory, test_db_session: AsyncSession
    ):
        llm = stub_llm_factory(scripted_responder)
        app.dependency_overrides[get_llm_client] = lambda: llm

        first = await client.post("/api/chat/message", json={"text": SALE_MESSAGE}, headers=auth_headers)
        conversation_id = first.json()["conversationId"]
        second = await client.post(
            "/api/chat/message",
            json={"text": "Thanks", "conversationId": conversation_id},
            headers=auth_headers,
        )

        assert first.status_code == 200
        assert first.json()["reply"] == "Got it!"
        assert first.json()["extractedData"]["confidence"] == 0.95
        assert second.json()["conversationId"] == conversation_id

        chat_calls = [call for call in llm.calls if call["system_prompt"] == ASSISTANT_PROMPT]
        assert chat_calls[0]["history"] == []
        assert [(turn.role, turn.content) for turn in chat_calls[1]["history"]] == [
            ("user", SALE_MESSAGE),
            ("assistant", "Got it!"),
        ]

        usage = (await test_db_session.execute(select(AIUsage).order_by(AIUsage.id))).scalars().all()
        assert [u.tokens_used for u in usage] == [42, 42]
        assert all(u.success for u in usage)

    async def test_stock_message_yields_pending_stock(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/chat/message",
            json={"text": "Restock 20 kg onions from Mama Njeri"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        pending = response.json()["pendingStock"]
        assert pending["actionType"] == "add_stock"
        assert pending["quantity"] == 20.0
        assert pending["unit"] == "kg"
        assert "onion" in pending["itemName"].lower()
        assert pending["supplierName"] == "Mama Njeri"

    async def test_sending_a_message_writes_no_transaction(self, client: AsyncClient, auth_headers):
        await client.post("/api/chat/message", json={"text": SALE_MESSAGE}, headers=auth_headers)

        response = await client.get("/api/transactions/", headers=auth_headers)

        assert response.json()["total"] == 0


class TestConfirmTransaction:

    async def test_confirm_then_duplicate(self, client: AsyncClient, auth_headers):
        first = await client.post("/api/chat/confirm-transaction", json=sale_payload(), headers=auth_headers)
        second = await client.post("/api/chat/confirm-transaction", json=sale_payload(), headers=auth_headers)

        assert first.status_code == 200
        assert first.json()["success"] is True
        assert first.json()["duplicate"] is False
        assert first.json()["transaction"]["status"] == "paid"
        assert first.json()["transaction"]["amount"] == 50.0

        assert second.status_code == 200
        assert second.json()["duplicate"] is True
        assert second.json()["transaction"]["id"] == first.json()["transaction"]["id"]

    async def test_debt_is_unpaid(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/chat/confirm-transaction",
            json=sale_payload(type="debt", amount=300, items=[], customerName="Juma"),
            headers=auth_headers,
        )

        transaction = response.json()["transaction"]
        assert transaction["status"] == "unpaid"
        assert transaction["customerName"] == "Juma"
        assert transaction["customerId"] is not None

    async def test_invalid_type_is_rejected(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/chat/confirm-transaction",
            json=sale_payload(type="gift"),
            headers=auth_headers,
        )

        assert response.status_code == 422


class TestConfirmStock:

    async def test_confirm_stock_and_list_movements(self, client: AsyncClient, auth_headers):
        payload = {
            "stockData": {"actionType": "add_stock", "itemName": "onions", "quantity": 20, "unit": "kg"},
            "rawInput": "Restock 20 kg onions",
        }
        response = await client.post("/api/chat/confirm-stock", json=payload, headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["inventoryItem"]["currentQuantity"] == 20.0
        assert body["movement"]["type"] == "restock"

        inventory_id = body["inventoryItem"]["id"]
        movements = await client.get(f"/api/inventory/{inventory_id}/movements", headers=auth_headers)
        assert movements.status_code == 200
        assert movements.json()["total"] == 1

        listing = await client.get("/api/inventory/", headers=auth_headers)
        assert listing.json()["items"][0]["normalizedName"] == "onions"

        repeat = await client.post("/api/chat/confirm-stock", json=payload, headers=auth_headers)
        assert repeat.json()["duplicate"] is True

    async def test_zero_quantity_is_rejected(self, client: AsyncClient, auth_headers):
        payload = {"stockData": {"actionType": "add_stock", "itemName": "onions", "quantity": 0}}

        response = await client.post("/api/chat/confirm-stock", json=payload, headers=auth_headers)

        assert response.status_code == 400

    async def test_movements_of_other_users_item_are_forbidden(self, client: AsyncClient, auth_headers):
        payload = {"stockData": {"actionType": "add_stock", "itemName": "onions", "quantity": 5}}
        created = await client.post("/api/chat/confirm-stock", json=payload, headers=auth_headers)
        inventory_id = created.json()["inventoryItem"]["id"]

        forbidden = await client.get(f"/api/inventory/{inventory_id}/movements", headers={"X-User-Id": "2"})
        missing = await client.get("/api/inventory/9999/movements", headers=auth_headers)

        assert forbidden.status_code == 403
        assert missing.status_code == 404


class TestTransactionRoutes:

    async def test_list_and_detail(self, client: AsyncClient, auth_headers):
        created = await client.post("/api/chat/confirm-transaction", json=sale_payload(), headers=auth_headers)
        transaction_id = created.json()["transaction"]["id"]

        listing = await client.get("/api/transactions/", headers=auth_headers)
        detail = await client.get(f"/api/transactions/{transaction_id}", headers=auth_headers)

        assert listing.status_code == 200
        assert listing.json()["total"] == 1
        assert detail.status_code == 200
        assert detail.json()["type"] == "sale"

    async def test_detail_ownership(self, client: AsyncClient, auth_headers):
        created = await client.post("/api/chat/confirm-transaction", json=sale_payload(), headers=auth_headers)
        transaction_id = created.json()["transaction"]["id"]

        other = await client.get(f"/api/transactions/{transaction_id}", headers={"X-User-Id": "2"})
        missing = await client.get("/api/transactions/9999", headers=auth_headers)

        assert other.status_code == 403
        assert missing.status_code == 404


class TestHealth:

    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "sokotally-api"}

    async def test_health_db(self, client: AsyncClient):
        response = await client.get("/health/db")

        assert response.json()["database"] == "connected"


async def _say(client: AsyncClient, headers: dict, text: str, conversation_id: str) -> None:
    response = await client.post(
        "/api/chat/message",
        json={"text": text, "conversationId": conversation_id},
        headers=headers,
    )
    assert response.status_code == 200


class TestConversations:

    async def test_history_is_oldest_first_and_limited(self, client: AsyncClient, auth_headers):
        await _say(client, auth_headers, "Habari", "conv-a")
        await _say(client, auth_headers, "How are you?", "conv-a")
        await _say(client, auth_headers, "Unrelated", "conv-b")

        response = await client.get(
            "/api/chat/history",
            params={"conversationId": "conv-a", "limit": 3},
            headers=auth_headers,
        )

        body = response.json()
        assert response.status_code == 200
        assert body["total"] == 3
        assert [(m["sender"], m["message"]) for m in body["messages"]] == [
            ("ai", APOLOGY_REPLY),
            ("user", "How are you?"),
            ("ai", APOLOGY_REPLY),
        ]
        assert all(m["conversationId"] == "conv-a" for m in body["messages"])

    async def test_history_without_conversation_spans_all(self, client: AsyncClient, auth_headers):
        await _say(client, auth_headers, "Habari", "conv-a")
        await _say(client, auth_headers, "Unrelated", "conv-b")

        response = await client.get("/api/chat/history", headers=auth_headers)

        assert response.json()["total"] == 4

    async def test_conversation_list(self, client: AsyncClient, auth_headers):
        long_first_message = "Nimeuza nyanya 10 kwa shilingi 200 leo asubuhi sokoni karibu na stendi"
        await _say(client, auth_headers, long_first_message, "conv-a")
        await _say(client, auth_headers, "Asante", "conv-a")
        await _say(client, auth_headers, "How are you?", "conv-b")

        response = await client.get("/api/chat/conversations", headers=auth_headers)

        conversations = response.json()["conversations"]
        assert [c["conversationId"] for c in conversations] == ["conv-b", "conv-a"]
        assert conversations[1]["title"] == long_first_message[:50]
        assert conversations[1]["messageCount"] == 4
        assert conversations[0]["messageCount"] == 2
        assert conversations[0]["lastMessageAt"]

    async def test_conversations_are_per_user(self, client: AsyncClient, auth_headers):
        await _say(client, auth_headers, "Habari", "conv-a")

        other = await client.get("/api/chat/conversations", headers={"X-User-Id": "2"})
        other_messages = await client.get("/api/chat/conversations/conv-a", headers={"X-User-Id": "2"})

        assert other.json()["conversations"] == []
        assert other_messages.json()["messages"] == []

    async def test_conversation_messages(self, client: AsyncClient, auth_headers):
        await _say(client, auth_headers, SALE_MESSAGE, "conv-a")

        response = await client.get("/api/chat/conversations/conv-a", headers=auth_headers)

        body = response.json()
        assert body["conversationId"] == "conv-a"
        assert [m["sender"] for m in body["messages"]] == ["user", "ai"]
        assert body["messages"][0]["processedData"]["totalAmount"] == 50.0
        assert body["messages"][1]["messageMetadata"]["model"]

    async def test_delete_conversation(self, client: AsyncClient, auth_headers, test_db_session: AsyncSession):
        await _say(client, auth_headers, "Habari", "conv-a")
        await _say(client, auth_headers, "Unrelated", "conv-b")

        deleted = await client.delete("/api/chat/conversations/conv-a", headers=auth_headers)
        again = await client.delete("/api/chat/conversations/conv-a", headers=auth_headers)

        assert deleted.status_code == 204
        assert again.status_code == 404
        remaining = (await test_db_session.execute(select(ChatMessage))).scalars().all()
        assert {m.conversation_id for m in remaining} == {"conv-b"}

    async def test_other_user_cannot_delete(self, client: AsyncClient, auth_headers):
        await _say(client, auth_headers, "Habari", "conv-a")

        response = await client.delete("/api/chat/conversations/conv-a", headers={"X-User-Id": "2"})
        mine = await client.get("/api/chat/conversations/conv-a", headers=auth_headers)

        assert response.status_code == 404
        assert len(mine.json()["messages"]) == 2


class TestDebts:

    async def _confirm(self, client: AsyncClient, headers: dict, **overrides) -> dict:
        response = await client.post("/api/chat/confirm-transaction", json=sale_payload(**overrides), headers=headers)
        assert response.status_code == 200
        return response.json()["transaction"]

    async def test_unpaid_debts_and_loans_are_listed(self, client: AsyncClient, auth_headers):
        debt = await self._confirm(client, auth_headers, type="debt", amount=300, items=[], customerName="Juma")
        loan = await self._confirm(client, auth_headers, type="loan", amount=1000, items=[], customerName="Peter")
        await self._confirm(client, auth_headers)

        response = await client.get("/api/transactions/debts", headers=auth_headers)

        body = response.json()
        assert response.status_code == 200
        assert body["total"] == 2
        assert {t["id"] for t in body["items"]} == {debt["id"], loan["id"]}

    async def test_marking_a_debt_paid_removes_it_from_the_list(self, client: AsyncClient, auth_headers):
        debt = await self._confirm(client, auth_headers, type="debt", amount=300, items=[], customerName="Juma")

        response = await client.patch(
            f"/api/transactions/{debt['id']}",
            json={"status": "paid"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "paid"
        debts = await client.get("/api/transactions/debts", headers=auth_headers)
        assert debts.json()["total"] == 0

    async def test_customer_can_be_corrected(self, client: AsyncClient, auth_headers):
        debt = await self._confirm(client, auth_headers, type="debt", amount=300, items=[])

        response = await client.patch(
            f"/api/transactions/{debt['id']}",
            json={"customerName": "Mama Njeri"},
            headers=auth_headers,
        )

        body = response.json()
        assert body["customerName"] == "Mama Njeri"
        assert body["customerId"] is not None
        assert body["status"] == "unpaid"

    async def test_update_ownership_and_validation(self, client: AsyncClient, auth_headers):
        debt = await self._confirm(client, auth_headers, type="debt", amount=300, items=[])

        other = await client.patch(f"/api/transactions/{debt['id']}", json={"status": "paid"}, headers={"X-User-Id": "2"})
        missing = await client.patch("/api/transactions/9999", json={"status": "paid"}, headers=auth_headers)
        invalid = await client.patch(f"/api/transactions/{debt['id']}", json={"status": "settled"}, headers=auth_headers)

        assert other.status_code == 403
        assert missing.status_code == 404
        assert invalid.status_code == 422
