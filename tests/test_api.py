"""Tests for the HTTP adapter."""

import pytest
from fastapi.testclient import TestClient
from httpx import AsyncClient

from orderflow.main import app
from tests.helpers import GUEST_ID, OTHER_GUEST_ID, RecordingNotificationGateway, signed_notification

GUEST = {"X-Actor-Id": GUEST_ID}
OTHER_GUEST = {"X-Actor-Id": OTHER_GUEST_ID}
CHEF = {"X-Actor-Id": "chef-1", "X-Actor-Role": "staff"}
OTHER_CHEF = {"X-Actor-Id": "chef-2", "X-Actor-Role": "staff"}
MANAGER = {"X-Actor-Id": "manager-1", "X-Actor-Role": "manager"}


async def place(client: AsyncClient, **body) -> dict:
    payload = {"items": [{"itemId": "burger", "quantity": 2}], **body}
    response = await client.post("/api/v1/orders", json=payload, headers=GUEST)
    assert response.status_code == 201
    return response.json()["data"]


async def confirm(client: AsyncClient, order_id: str) -> dict:
    response = await client.post(
        f"/api/v1/orders/{order_id}/confirm",
        json={"paymentId": "pay-1", "transactionId": "tx-1", "amount": "1100.00"},
        headers=CHEF,
    )
    assert response.status_code == 200
    return response.json()["data"]


@pytest.mark.asyncio
async def test_health(test_client: AsyncClient) -> None:
    response = await test_client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_place_and_read_order(test_client: AsyncClient) -> None:
    order = await place(test_client, notes="Extra napkins")

    assert order["status"] == "pending"
    assert order["total"] == "1100.00"
    assert order["guest_id"] == GUEST_ID

    own = await test_client.get(f"/api/v1/orders/{order['id']}", headers=GUEST)
    assert own.status_code == 200

    other = await test_client.get(f"/api/v1/orders/{order['id']}", headers=OTHER_GUEST)
    assert other.status_code == 403
    assert other.json()["error"] == "forbidden"

    staff = await test_client.get(f"/api/v1/orders/{order['id']}", headers=CHEF)
    assert staff.status_code == 200

    mine = await test_client.get("/api/v1/orders", headers=GUEST)
    assert [o["id"] for o in mine.json()["data"]] == [order["id"]]


@pytest.mark.asyncio
async def test_missing_actor_header(test_client: AsyncClient) -> None:
    response = await test_client.get("/api/v1/orders")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_system_identity_cannot_be_claimed(test_client: AsyncClient) -> None:
    response = await test_client.get("/api/v1/kitchen/queue", headers={"X-Actor-Id": "system"})

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unavailable_item_rejected(test_client: AsyncClient) -> None:
    response = await test_client.post(
        "/api/v1/orders", json={"items": [{"itemId": "lobster"}]}, headers=GUEST
    )

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_item"


@pytest.mark.asyncio
async def test_confirm_endpoint(test_client: AsyncClient) -> None:
    order = await place(test_client)

    guest_attempt = await test_client.post(
        f"/api/v1/orders/{order['id']}/confirm", json={"paymentId": "pay-1"}, headers=GUEST
    )
    assert guest_attempt.status_code == 403

    mismatch = await test_client.post(
        f"/api/v1/orders/{order['id']}/confirm",
        json={"paymentId": "pay-1", "amount": "10.00"},
        headers=CHEF,
    )
    assert mismatch.status_code == 400
    assert mismatch.json()["error"] == "invalid_amount"

    confirmed = await confirm(test_client, order["id"])
    assert confirmed["status"] == "confirmed"
    assert confirmed["payment_status"] == "paid"

    again = await test_client.post(
        f"/api/v1/orders/{order['id']}/confirm", json={"paymentId": "pay-1"}, headers=CHEF
    )
    assert again.status_code == 409

    missing = await test_client.post(
        "/api/v1/orders/missing/confirm", json={"paymentId": "pay-1"}, headers=CHEF
    )
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_assign_endpoint(test_client: AsyncClient) -> None:
    order = await place(test_client)
    await confirm(test_client, order["id"])
    url = f"/api/v1/orders/{order['id']}/assign"

    assert (await test_client.put(url, json={"staffId": "chef-1", "taskType": "prep"}, headers=CHEF)).status_code == 403

    blank = await test_client.put(url, json={"staffId": " ", "taskType": "prep"}, headers=MANAGER)
    assert blank.status_code == 400
    assert blank.json()["error"] == "invalid_staff"

    no_task = await test_client.put(url, json={"staffId": "chef-1", "taskType": "delivery"}, headers=MANAGER)
    assert no_task.status_code == 404

    assigned = await test_client.put(url, json={"staffId": "chef-1", "taskType": "prep"}, headers=MANAGER)
    assert assigned.status_code == 200
    assert assigned.json()["data"]["assigned_to"] == "chef-1"


@pytest.mark.asyncio
async def test_kitchen_status_endpoint(test_client: AsyncClient) -> None:
    order = await place(test_client)
    await confirm(test_client, order["id"])
    url = f"/api/v1/orders/{order['id']}/status"

    assert (await test_client.put(url, json={"kitchenStatus": "preparing"}, headers=GUEST)).status_code == 403

    invalid = await test_client.put(url, json={"kitchenStatus": "burnt"}, headers=CHEF)
    assert invalid.status_code == 400
    assert invalid.json()["error"] == "invalid_status"

    out_of_order = await test_client.put(url, json={"kitchenStatus": "delivered"}, headers=CHEF)
    assert out_of_order.status_code == 400
    assert out_of_order.json()["error"] == "invalid_state"

    preparing = await test_client.put(url, json={"kitchenStatus": "preparing"}, headers=CHEF)
    assert preparing.status_code == 200
    assert preparing.json()["data"]["status"] == "preparing"


@pytest.mark.asyncio
async def test_modify_endpoint(test_client: AsyncClient) -> None:
    order = await place(test_client)
    url = f"/api/v1/orders/{order['id']}/modify"
    body = {"items": [{"itemId": "tea", "quantity": 1}], "notes": "Just tea"}

    assert (await test_client.put(url, json=body, headers=OTHER_GUEST)).status_code == 403

    modified = await test_client.put(url, json=body, headers=GUEST)
    assert modified.status_code == 200
    assert modified.json()["data"]["total"] == "110.00"

    await confirm_with_amount(test_client, order["id"], "110.00")
    await test_client.put(f"/api/v1/orders/{order['id']}/status", json={"kitchenStatus": "preparing"}, headers=CHEF)

    rejected = await test_client.put(url, json=body, headers=GUEST)
    assert rejected.status_code == 400
    assert rejected.json()["message"] == "Cannot modify order in preparing status"


async def confirm_with_amount(client: AsyncClient, order_id: str, amount: str) -> None:
    response = await client.post(
        f"/api/v1/orders/{order_id}/confirm",
        json={"paymentId": "pay-2", "amount": amount},
        headers=CHEF,
    )
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_cancel_endpoint_reports_refund(test_client: AsyncClient) -> None:
    order = await place(test_client)
    await confirm(test_client, order["id"])
    await test_client.put(
        f"/api/v1/orders/{order['id']}/status", json={"kitchenStatus": "preparing"}, headers=CHEF
    )
    url = f"/api/v1/orders/{order['id']}/cancel"

    forbidden = await test_client.request("DELETE", url, json={"reason": "x"}, headers=OTHER_GUEST)
    assert forbidden.status_code == 403

    response = await test_client.request("DELETE", url, json={"reason": "Too slow"}, headers=GUEST)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["refundAmount"] == "550.00"
    assert data["refundPercentage"] == 50
    assert data["refundStatus"] == "pending"
    assert "550.00" in response.json()["message"]

    again = await test_client.request("DELETE", url, json={"reason": "Too slow"}, headers=GUEST)
    assert again.status_code == 400


@pytest.mark.asyncio
async def test_cancel_without_body(test_client: AsyncClient) -> None:
    order = await place(test_client)

    response = await test_client.delete(f"/api/v1/orders/{order['id']}/cancel", headers=GUEST)

    assert response.status_code == 200
    assert response.json()["data"]["refundPercentage"] == 100


@pytest.mark.asyncio
async def test_review_endpoint(test_client: AsyncClient) -> None:
    order = await place(test_client)
    url = f"/api/v1/orders/{order['id']}/review"

    too_high = await test_client.post(url, json={"rating": 6, "comment": "!"}, headers=GUEST)
    assert too_high.status_code == 400
    assert too_high.json()["error"] == "invalid_rating"

    early = await test_client.post(url, json={"rating": 5}, headers=GUEST)
    assert early.status_code == 400
    assert early.json()["error"] == "invalid_state"

    await confirm(test_client, order["id"])
    status_url = f"/api/v1/orders/{order['id']}/status"
    for kitchen_status in ("preparing", "ready", "delivered"):
        await test_client.put(status_url, json={"kitchenStatus": kitchen_status}, headers=CHEF)

    reviewed = await test_client.post(url, json={"rating": 5, "comment": "Great"}, headers=GUEST)
    assert reviewed.status_code == 200
    assert reviewed.json()["data"]["rating"] == 5

    duplicate = await test_client.post(url, json={"rating": 4}, headers=GUEST)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "already_reviewed"


@pytest.mark.asyncio
async def test_task_endpoints(test_client: AsyncClient) -> None:
    order = await place(test_client)
    await confirm(test_client, order["id"])

    queue = await test_client.get("/api/v1/kitchen/queue", headers=CHEF)
    [task] = queue.json()["data"]
    assert task["order_id"] == order["id"]

    assert (await test_client.get("/api/v1/kitchen/queue", headers=GUEST)).status_code == 403

    claimed = await test_client.post(f"/api/v1/tasks/{task['id']}/claim", headers=CHEF)
    assert claimed.status_code == 200

    lost = await test_client.post(f"/api/v1/tasks/{task['id']}/claim", headers=OTHER_CHEF)
    assert lost.status_code == 409
    assert lost.json()["error"] == "already_claimed"

    not_holder = await test_client.put(
        f"/api/v1/tasks/{task['id']}/status", json={"status": "in-progress"}, headers=OTHER_CHEF
    )
    assert not_holder.status_code == 403

    started = await test_client.put(
        f"/api/v1/tasks/{task['id']}/status", json={"status": "in-progress"}, headers=CHEF
    )
    assert started.json()["data"]["status"] == "in-progress"

    checks = await test_client.put(
        f"/api/v1/tasks/{task['id']}/quality-checks",
        json={"temperature_ok": True, "allergens_verified": True},
        headers=CHEF,
    )
    assert checks.json()["data"]["quality_checks"]["temperature_ok"] is True

    workload = await test_client.get("/api/v1/staff/chef-1/workload", headers=CHEF)
    assert workload.json()["data"]["in_progress"] == 1

    assert (await test_client.get("/api/v1/staff/chef-1/workload", headers=OTHER_CHEF)).status_code == 403
    assert (await test_client.get("/api/v1/staff/chef-1/workload", headers=MANAGER)).status_code == 200

    timeline = await test_client.get(f"/api/v1/orders/{order['id']}/timeline", headers=GUEST)
    assert timeline.json()["data"]["estimatedCompletionTime"] is not None


@pytest.mark.asyncio
async def test_payment_webhook_form_post(
    test_client: AsyncClient,
    notifier: RecordingNotificationGateway,
) -> None:
    order = await place(test_client)
    notification = signed_notification(order["id"], "1100.00")
    form = notification.model_dump(exclude_none=True)

    applied = await test_client.post("/api/v1/webhooks/payment", data=form)
    assert applied.status_code == 200
    assert applied.json()["data"]["status"] == "applied"

    replay = await test_client.post("/api/v1/webhooks/payment", json=form)
    assert replay.status_code == 200
    assert replay.json()["data"]["status"] == "duplicate"

    stored = await test_client.get(f"/api/v1/orders/{order['id']}", headers=GUEST)
    assert stored.json()["data"]["status"] == "confirmed"
    assert "newFoodTask" in notifier.events("food-kitchen")


@pytest.mark.asyncio
async def test_payment_webhook_bad_signature(test_client: AsyncClient) -> None:
    order = await place(test_client)
    form = signed_notification(order["id"], "1100.00", secret="forged").model_dump(exclude_none=True)

    response = await test_client.post("/api/v1/webhooks/payment", data=form)

    assert response.status_code == 401
    assert response.json()["error"] == "invalid_signature"


@pytest.mark.asyncio
async def test_payment_webhook_business_no_op_still_200(test_client: AsyncClient) -> None:
    form = signed_notification("unknown-order", "10.00").model_dump(exclude_none=True)

    response = await test_client.post("/api/v1/webhooks/payment", data=form)

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "ignored"


def test_websocket_ping() -> None:
    client = TestClient(app)

    with client.websocket_connect("/ws/food-kitchen") as websocket:
        assert websocket.receive_json() == {"type": "connected", "audience": "food-kitchen"}
        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {"type": "pong"}


@pytest.mark.asyncio
@pytest.mark.parametrize("body", ["123", "[1, 2]", '"paid"', "{not json"])
async def test_payment_webhook_non_object_body(test_client: AsyncClient, body: str) -> None:
    response = await test_client.post(
        "/api/v1/webhooks/payment",
        content=body,
        headers={"content-type": "application/json"},
    )

    assert response.status_code == 401
    assert response.json()["error"] == "invalid_signature"


@pytest.mark.asyncio
async def test_review_moderation_endpoints(test_client: AsyncClient) -> None:
    order = await place(test_client)
    await confirm(test_client, order["id"])
    status_url = f"/api/v1/orders/{order['id']}/status"
    for kitchen_status in ("preparing", "ready", "delivered"):
        await test_client.put(status_url, json={"kitchenStatus": kitchen_status}, headers=CHEF)
    await test_client.post(f"/api/v1/orders/{order['id']}/review", json={"rating": 1}, headers=GUEST)

    url = f"/api/v1/orders/{order['id']}/review/moderation"
    assert (await test_client.put(url, json={"flagged": True}, headers=CHEF)).status_code == 403

    moderated = await test_client.put(url, json={"isVisible": False, "flagged": True}, headers=MANAGER)
    assert moderated.status_code == 200
    assert moderated.json()["data"]["is_visible"] is False
    assert moderated.json()["data"]["flagged"] is True

    hidden = await test_client.get("/api/v1/reviews", params={"status": "hidden"}, headers=MANAGER)
    assert [r["orderId"] for r in hidden.json()["data"]] == [order["id"]]
    visible = await test_client.get("/api/v1/reviews", params={"status": "visible"}, headers=MANAGER)
    assert visible.json()["data"] == []

    stats = await test_client.get("/api/v1/reviews/stats", headers=MANAGER)
    assert stats.json()["data"]["flagged_reviews"] == 1
    assert stats.json()["data"]["rating_distribution"]["1"] == 1

    missing = await test_client.put("/api/v1/orders/missing/review/moderation", json={}, headers=MANAGER)
    assert missing.status_code == 404
