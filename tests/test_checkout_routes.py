import pytest
from fastapi.testclient import TestClient

from storefront.main import app
from storefront.routes.auth.dependencies import get_attempt_store, get_database, get_payment_backend
from storefront.services.payment.attempt_store import PaymentAttemptStore
from tests.fakes import FakeBackend

CHECKOUT = {
    "country_id": "bd",
    "product_ids": ["prod_1"],
    "order_amount": "750.00",
    "customer": {"phone": "01712345678", "email": "shopper@example.com"},
    "items": [{"product_id": "prod_1", "product_name": "T-Shirt", "quantity": 1, "price": "750.00"}],
    "otp_code": "123456",
}


@pytest.fixture
def fake_backend():
    return FakeBackend(known_transactions={"TXN123", "ADV100"})


@pytest.fixture
def client(fake_backend, mock_db):
    store = PaymentAttemptStore(ttl_minutes=30)
    app.dependency_overrides[get_payment_backend] = lambda: fake_backend
    app.dependency_overrides[get_attempt_store] = lambda: store
    app.dependency_overrides[get_database] = lambda: mock_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def open_attempt(client, **overrides):
    response = client.post("/api/payments/attempts", json={**CHECKOUT, **overrides})
    assert response.status_code == 201
    return response.json()["data"]["attempt_id"]


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_list_gateways(client):
    response = client.get("/api/payments/gateways", params={"country_id": "bd", "product_ids": ["prod_1"]})

    body = response.json()
    assert response.status_code == 200
    assert body["data"]["available"] is True
    assert [g["name"] for g in body["data"]["gateways"]] == ["bkash", "nagad", "cod", "binance_pay"]


def test_list_gateways_falls_back_to_default_country(client, fake_backend):
    response = client.get("/api/payments/gateways")

    assert response.json()["data"]["country_id"] == "bd"
    assert fake_backend.calls["get_country_id_by_code"] == ["BD"]


def test_no_payment_methods(client, fake_backend):
    fake_backend.gateways = []

    body = client.get("/api/payments/gateways", params={"country_id": "bd"}).json()

    assert body["success"] is True
    assert body["data"]["available"] is False
    assert body["message"] == "No payment methods available"


def test_full_bkash_checkout(client, fake_backend):
    attempt_id = open_attempt(client)

    selected = client.post(f"/api/payments/attempts/{attempt_id}/gateway", json={"gateway_id": "gw_bkash"})
    submitted = client.post(f"/api/payments/attempts/{attempt_id}/submit", json={"transaction_id": "TXN123"})

    assert selected.json()["data"]["outcome"]["code"] == "gateway_selected"
    body = submitted.json()
    assert submitted.status_code == 200
    assert body["data"]["outcome"]["code"] == "submitted_for_review"
    assert body["data"]["attempt"]["state"] == "succeeded"
    assert body["data"]["attempt"]["order_id"] == "O1"
    assert fake_backend.calls["submit_transaction_for_review"][0][:3] == ("O1", "bkash", "TXN123")

    state = client.get(f"/api/payments/attempts/{attempt_id}").json()
    assert state["data"]["state"] == "succeeded"


def test_unknown_transaction_returns_support_link(client, fake_backend):
    attempt_id = open_attempt(client)
    client.post(f"/api/payments/attempts/{attempt_id}/gateway", json={"gateway_id": "gw_nagad"})

    response = client.post(f"/api/payments/attempts/{attempt_id}/submit", json={"transaction_id": "MISSING1"})

    body = response.json()
    assert response.status_code == 404
    assert body["success"] is False
    assert body["data"]["outcome"]["code"] == "transaction_not_found"
    assert "MISSING1" in body["data"]["outcome"]["support_link"]
    assert fake_backend.calls["create_order"] == []


def test_transaction_reused_by_another_checkout_conflicts(client, fake_backend):
    first = open_attempt(client)
    second = open_attempt(client)
    for attempt_id in (first, second):
        client.post(f"/api/payments/attempts/{attempt_id}/gateway", json={"gateway_id": "gw_bkash"})

    paid = client.post(f"/api/payments/attempts/{first}/submit", json={"transaction_id": "TXN123"})
    reused = client.post(f"/api/payments/attempts/{second}/submit", json={"transaction_id": "TXN123"})

    assert paid.status_code == 200
    assert reused.status_code == 409
    assert reused.json()["data"]["outcome"]["code"] == "transaction_already_used"
    assert len(fake_backend.calls["create_order"]) == 1


def test_submit_without_gateway_is_rejected(client):
    attempt_id = open_attempt(client)

    response = client.post(f"/api/payments/attempts/{attempt_id}/submit", json={"transaction_id": "TXN123"})

    assert response.status_code == 400
    assert response.json()["data"]["outcome"]["code"] == "input_rejected"


def test_cod_select_and_cancel(client):
    attempt_id = open_attempt(client)

    selected = client.post(f"/api/payments/attempts/{attempt_id}/gateway", json={"gateway_id": "gw_cod"})
    cancelled = client.post(f"/api/payments/attempts/{attempt_id}/cod/cancel")

    assert selected.json()["data"]["outcome"]["code"] == "cod_selected"
    assert selected.json()["data"]["attempt"]["remaining_balance"] == "650.00"
    assert cancelled.json()["data"]["outcome"]["code"] == "cancelled"
    assert cancelled.json()["data"]["attempt"]["state"] == "selecting_gateway"


def test_cod_below_minimum_is_unavailable(client, monkeypatch):
    monkeypatch.setenv("COD_MINIMUM_ORDER_AMOUNT", "100")
    attempt_id = open_attempt(
        client,
        order_amount="80.00",
        items=[{"product_id": "prod_1", "quantity": 1, "price": "80.00"}]
    )

    response = client.post(f"/api/payments/attempts/{attempt_id}/gateway", json={"gateway_id": "gw_cod"})

    assert response.status_code == 400
    assert response.json()["data"]["outcome"]["code"] == "cod_unavailable"


def test_unknown_attempt(client):
    response = client.post("/api/payments/attempts/PAY_NOPE/submit", json={"transaction_id": "TXN123"})

    assert response.status_code == 404
    assert response.json()["success"] is False


def test_invalid_checkout_is_rejected(client):
    response = client.post("/api/payments/attempts", json={**CHECKOUT, "order_amount": "0"})

    assert response.status_code == 422


def test_amount_must_match_cart_items(client):
    response = client.post("/api/payments/attempts", json={**CHECKOUT, "order_amount": "1.00"})

    assert response.status_code == 422


def test_checkout_without_items_is_rejected(client):
    response = client.post("/api/payments/attempts", json={**CHECKOUT, "items": []})

    assert response.status_code == 422


def test_support_link(client):
    body = client.get("/api/payments/support-link", params={"transaction_id": "TXN123"}).json()

    assert body["data"]["support_link"].startswith("https://wa.me/")
    assert "Transaction ID: TXN123" in body["data"]["message"]


def test_order_verification_status(client, mock_db):
    mock_db.transaction_verifications.cursor.to_list.return_value = [{
        "_id": "64f000000000000000000001",
        "verification_id": "TV_1",
        "order_id": "O1",
        "payment_gateway": "bkash",
        "transaction_id": "TXN123",
        "amount": 750.0,
        "status": "pending",
    }]

    body = client.get("/api/payments/orders/O1/verification").json()

    assert body["data"]["status"] == "pending"
    assert body["data"]["verification_id"] == "TV_1"


def test_order_without_verification(client):
    response = client.get("/api/payments/orders/O404/verification")

    assert response.status_code == 404
