"""HTTP surface tests using FastAPI's TestClient with the service container overridden."""

import hashlib
import json

import pytest
from fastapi.testclient import TestClient

from ppob_chat.config import settings
from ppob_chat.dependencies import get_container
from ppob_chat.main import app
from ppob_chat.models.products import RawUpstreamProduct

from conftest import GATEWAY_KEY


pytestmark = pytest.mark.usefixtures("live_price_list")


CHECKOUT_BODY = {
    "productId": "tsel-50k",
    "productType": "pulsa",
    "productName": "Pulsa Telkomsel 50.000",
    "targetNumber": "081234567890",
    "amount": 50000,
    "adminFee": 1500,
    "totalAmount": 51500,
}


@pytest.fixture
def client(container):
    app.dependency_overrides[get_container] = lambda: container
    yield TestClient(app)
    app.dependency_overrides.clear()


def _checkout(client):
    response = client.post("/api/transactions", json=CHECKOUT_BODY)
    assert response.status_code == 200
    return response.json()["transaction"]


def test_health(client):
    body = client.get("/api/health").json()
    assert body["status"] == "healthy"
    assert body["catalog_size"] == 21


def test_products_endpoints(client):
    body = client.get("/api/products").json()
    assert body["count"] == 21
    assert {"id", "category", "provider", "name", "price", "adminFee", "isActive"} <= set(body["products"][0])

    pln = client.get("/api/products/token_listrik").json()
    assert [p["id"] for p in pln["products"]] == ["pln-20k", "pln-50k", "pln-100k", "pln-200k"]

    assert client.get("/api/products/asuransi").json()["count"] == 0


def test_payment_methods(client):
    methods = client.get("/api/payment-methods").json()["paymentMethods"]
    assert {"id": "11", "name": "QRIS"} in methods


def test_chat_process(client, llm):
    llm.replies = [json.dumps({
        "intent": "buy", "productType": "pulsa", "provider": "telkomsel",
        "amount": 50000, "targetNumber": "081234567890", "confidence": 0.95,
    })]
    response = client.post("/api/chat/process", json={"command": "Beli pulsa Telkomsel 50rb untuk 081234567890"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["productData"]["totalAmount"] == 51500


def test_chat_rejects_empty_command(client):
    response = client.post("/api/chat/process", json={"command": "   "})
    assert response.status_code == 400
    assert response.json()["error_code"] == "validation_error"


def test_create_and_lookup_transaction(client):
    response = client.post("/api/transactions", json=CHECKOUT_BODY)
    body = response.json()

    assert response.status_code == 200
    assert body["success"] is True
    assert body["paymentUrl"] == body["transaction"]["paymentUrl"]
    assert body["transaction"]["status"] == "pending"
    assert body["transaction"]["totalAmount"] == 51500

    transaction_id = body["transaction"]["id"]
    fetched = client.get(f"/api/transactions/{transaction_id}").json()
    assert fetched["transaction"]["id"] == transaction_id

    by_target = client.get("/api/transactions/check/081234567890").json()
    assert by_target["count"] == 1


def test_create_transaction_gateway_failure(client, gateway):
    gateway.fail = True
    response = client.post("/api/transactions", json=CHECKOUT_BODY)

    assert response.status_code == 502
    assert response.json()["success"] is False


def test_create_transaction_for_unpriceable_sku_is_400(client, gateway):
    response = client.post("/api/transactions", json={**CHECKOUT_BODY, "productId": "GHOST", "amount": 1})

    assert response.status_code == 400
    assert response.json()["error_code"] == "ppob:transaction:invalid"
    assert gateway.created == []


def test_unknown_transaction_is_404(client):
    response = client.get("/api/transactions/txn_missing")
    assert response.status_code == 404
    assert response.json()["error_code"] == "ppob:transaction:not_found"


def test_webhook_json_success(client, reseller):
    transaction = _checkout(client)
    payload = {"reference": transaction["paymentRef"], "status": "Success"}

    first = client.post("/api/webhook/payment", json=payload)
    second = client.post("/api/webhook/payment", json=payload)

    assert first.status_code == second.status_code == 200
    assert first.json()["status"] == "success"
    assert len(reseller.submissions) == 1


def test_webhook_form_alias(client):
    transaction = _checkout(client)
    response = client.post(
        "/api/webhook/paydisini",
        data={"unique_code": transaction["id"], "status": "Expired"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "failed"


def test_webhook_unknown_reference_is_404(client):
    response = client.post("/api/webhook/payment", json={"reference": "NOPE", "status": "Success"})
    assert response.status_code == 404


def test_webhook_invalid_body_is_400(client):
    response = client.post("/api/webhook/payment", json={"status": "Success"})
    assert response.status_code == 400


def test_webhook_signature_verification(client, monkeypatch):
    monkeypatch.setattr(settings, "paydisini_verify_callback", True)
    transaction = _checkout(client)

    rejected = client.post("/api/webhook/paydisini", data={
        "unique_code": transaction["id"], "status": "Success", "signature": "0" * 32,
    })
    assert rejected.status_code == 401

    signature = hashlib.md5(f"{GATEWAY_KEY}{transaction['id']}CallbackStatus".encode()).hexdigest()
    accepted = client.post("/api/webhook/paydisini", data={
        "unique_code": transaction["id"], "status": "Success", "signature": signature,
    })
    assert accepted.status_code == 200


def test_admin_stats_and_transactions(client):
    transaction = _checkout(client)
    client.post("/api/webhook/payment", json={"reference": transaction["id"], "status": "Success"})
    _checkout(client)

    stats = client.get("/api/admin/stats").json()
    assert stats["todayTransactions"] == 2
    assert stats["todayRevenue"] == 51500
    assert stats["pendingTransactions"] == 1
    assert stats["failedTransactions"] == 0

    past = client.get("/api/admin/stats", params={"date": "2020-01-01"}).json()
    assert past == {
        "date": "2020-01-01",
        "todayTransactions": 0,
        "todayRevenue": 0,
        "pendingTransactions": 0,
        "failedTransactions": 0,
    }

    recent = client.get("/api/admin/transactions", params={"limit": 1}).json()
    assert recent["count"] == 1


def test_admin_sync_products(client, reseller):
    empty = client.post("/api/admin/sync-products").json()
    assert empty["replaced"] is False
    assert empty["totalCount"] == 21

    reseller.catalog = [RawUpstreamProduct(
        buyer_sku_code="XL10", product_name="XL 10.000", category="Pulsa", brand="XL", price=10_200,
    )]
    synced = client.post("/api/admin/sync-products").json()
    assert synced["replaced"] is True
    assert synced["syncedCount"] == 1
    assert synced["totalCount"] == 22
    assert any(p["id"] == "XL10" for p in client.get("/api/products/pulsa").json()["products"])


def test_admin_recovery_endpoints(client, reseller):
    transaction = _checkout(client)

    not_flagged = client.post(f"/api/admin/transactions/{transaction['id']}/retry-fulfillment")
    assert not_flagged.status_code == 400
    assert not_flagged.json()["error_code"] == "ppob:transaction:invalid"

    reseller.fulfillment_error = "timeout"
    client.post("/api/webhook/payment", json={"reference": transaction["id"], "status": "Success"})
    reseller.fulfillment_error = None

    retried = client.post(f"/api/admin/transactions/{transaction['id']}/retry-fulfillment")
    assert retried.status_code == 200
    assert retried.json()["transaction"]["status"] == "success"

    reconciled = client.post(f"/api/admin/transactions/{transaction['id']}/reconcile")
    assert reconciled.status_code == 200
    assert reconciled.json()["transaction"]["status"] == "success"
