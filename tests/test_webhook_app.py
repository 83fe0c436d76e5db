import asyncio

import pytest
from fastapi.testclient import TestClient

from webhook_app import app


@pytest.fixture
def client():
    return TestClient(app)


def test_health(client):
    assert client.get("/").json() == {"ok": True, "service": "merch-checkout"}
    assert client.get("/ping").json() == {"status": "ok"}
    assert client.head("/ping").status_code == 200


def test_inventory(client, settings, ledger):
    ledger.rows = [["S", "10"], ["M", "0"], ["Black", "3"]]
    res = client.get("/inventory")
    assert res.status_code == 200
    assert res.json() == {
        "inventory": {"S": 10, "M": 0, "L": 0, "XL": 0, "XXL": 0},
        "capInventory": {"Black": 3, "Beige": 0},
    }


def test_inventory_fallback_is_still_200(client, settings, ledger):
    ledger.read_error = OSError("sheets down")
    res = client.get("/inventory")
    assert res.status_code == 200
    body = res.json()
    assert body["fallback"] is True
    assert body["error"]
    assert set(body["inventory"].values()) == {0}
    assert set(body["capInventory"].values()) == {0}


SALE = {
    "cart": [{"size": "m", "quantity": 2}],
    "capCart": [],
    "totalPrice": 178.0,
    "totalItems": 2,
    "paymentMethod": "cash",
}


def test_process_sale(client, settings, ledger, telegram):
    ledger.reply = "Success"
    res = client.post("/process-sale", json=SALE)
    assert res.status_code == 200
    assert res.json() == {"success": True, "message": "Success"}
    assert ledger.posts[0][1]["M"] == 2
    assert len(telegram.sent) == 1


def test_process_sale_ledger_failure(client, settings, ledger, telegram):
    ledger.status = 403
    ledger.reply = "Forbidden"
    res = client.post("/process-sale", json=SALE)
    assert res.status_code == 500
    body = res.json()
    assert body["success"] is False
    assert "403" in body["error"]
    assert telegram.sent == []


def test_process_sale_notification_failure(client, settings, ledger, telegram):
    telegram.error = asyncio.TimeoutError()
    res = client.post("/process-sale", json=SALE)
    assert res.status_code == 200
    assert res.json()["success"] is True


def test_process_sale_bad_bodies(client, settings, ledger):
    res = client.post("/process-sale", content=b"{not json", headers={"Content-Type": "application/json"})
    assert res.status_code == 500
    assert res.json() == {"success": False, "error": "Bad JSON"}

    res = client.post("/process-sale", json={"capCart": [], "paymentMethod": "qr"})
    assert res.status_code == 500
    assert res.json()["error"].startswith("Invalid sale request")
    assert ledger.posts == []


def test_unexpected_error_is_500(client, monkeypatch):
    async def boom(payload):
        raise RuntimeError("kaboom")

    monkeypatch.setattr("webhook_app.process_sale", boom)
    res = client.post("/process-sale", json=SALE)
    assert res.status_code == 500
    assert res.json() == {"success": False, "error": "kaboom"}
