"""API tests for the Flask blueprints.

Covers request validation (400), pipeline failures (422), not-found
handling (404) and the inventory receipt flow over HTTP.
"""

from pathlib import Path

FIXTURES = Path(__file__).parent.parent.parent / "fixtures" / "sample_emails"


def _modern_optical_payload(**overrides):
    payload = {
        "sender": "custsvc@modernoptical.com",
        "subject": "Receipt for Order Number 6817195",
        "html": (FIXTURES / "modern_optical_order.html").read_text(encoding="utf-8"),
        "accountId": 3,
    }
    payload.update(overrides)
    return payload


# ============================================================================
# HEALTH
# ============================================================================


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    data = response.get_json()
    assert data["status"] == "ok"
    assert data["checks"]["database"] is True


def test_ping(client):
    assert client.get("/api/ping").status_code == 200


# ============================================================================
# EMAILS
# ============================================================================


def test_detect_vendor(client, vendor_ids):
    response = client.post(
        "/api/emails/detect-vendor",
        json={"sender": "custsvc@modernoptical.com", "subject": "Order", "html": "<p>hi</p>"},
    )

    assert response.status_code == 200
    data = response.get_json()
    assert data["vendor"] == "modern_optical"
    assert data["tier"] == "domain"
    assert data["confidence"] == 95
    assert data["vendorId"] == vendor_ids["modern_optical"]
    assert not data["needsManualReview"]


def test_detect_vendor_requires_sender(client, vendor_ids):
    response = client.post("/api/emails/detect-vendor", json={"subject": "Order"})

    assert response.status_code == 400
    assert response.get_json()["success"] is False


def test_process_email(client, vendor_ids):
    response = client.post("/api/emails/process", json=_modern_optical_payload())

    assert response.status_code == 200
    data = response.get_json()
    assert data["success"]
    assert data["vendor"] == "modern_optical"
    assert data["order"]["order_number"] == "6817195"
    assert len(data["items"]) == 5
    assert data["stats"]["cached"] == 5
    assert data["orderId"] is not None
    assert data["error"] is None


def test_process_email_failure_is_422(client, vendor_ids):
    response = client.post(
        "/api/emails/process",
        json={"sender": "friend@gmail.com", "subject": "lunch?", "html": "<p>noon?</p>"},
    )

    assert response.status_code == 422
    data = response.get_json()
    assert not data["success"]
    assert data["error"]["code"] == "unknown_vendor"
    assert data["error"]["manual_review"] is True


def test_process_email_rejects_bad_account(client, vendor_ids):
    response = client.post("/api/emails/process", json=_modern_optical_payload(accountId="abc"))

    assert response.status_code == 400


def test_process_async_queues_job(client, vendor_ids):
    response = client.post("/api/emails/process-async", json=_modern_optical_payload())

    assert response.status_code == 202
    data = response.get_json()
    assert data["job_id"]
    assert data["status"] == "queued"


def test_unknown_job_is_404(client):
    response = client.get("/api/emails/jobs/00000000-0000-0000-0000-000000000000")

    assert response.status_code == 404
    assert response.get_json()["status"] == "pending"


# ============================================================================
# CATALOG
# ============================================================================


def test_catalog_cache_then_check(client, vendor_ids):
    vendor_id = vendor_ids["safilo"]
    item = {
        "brand": "CARRERA",
        "model": "8862",
        "color": "BLACK",
        "eye_size": "54",
        "upc": "762753000001",
        "wholesale_cost": 82.5,
        "api_verified": True,
        "confidence_score": 95,
    }

    cached = client.post(
        "/api/catalog/cache", json={"vendorId": vendor_id, "vendorName": "Safilo", "items": [item]}
    )
    assert cached.status_code == 200
    assert cached.get_json()["cached"] == 1

    checked = client.post(
        "/api/catalog/check",
        json={
            "vendorId": vendor_id,
            "items": [
                item,
                {**item, "model": "9999", "upc": None},
                {**item, "model": "9999", "color": "RED", "eye_size": "60"},
                {**item, "model": "7777", "upc": "000000000000"},
            ],
        },
    )
    data = checked.get_json()
    assert checked.status_code == 200
    assert data["cacheHits"] == 2
    assert data["cacheMisses"] == 2
    assert data["hitRate"] == 50.0
    assert data["items"][0]["match_tier"] == "exact"
    assert data["items"][0]["wholesale_price"] == 82.5
    assert not data["items"][1]["cached"]
    # Same UPC under another model is still the cataloged frame
    assert data["items"][2]["match_tier"] == "upc"
    assert not data["items"][3]["cached"]


def test_catalog_check_hits_invalidate_cached_aggregates(client, vendor_ids, mocker):
    vendor_id = vendor_ids["safilo"]
    item = {"brand": "CARRERA", "model": "8862", "color": "BLACK", "eye_size": "54"}
    client.post(
        "/api/catalog/cache", json={"vendorId": vendor_id, "vendorName": "Safilo", "items": [item]}
    )
    invalidate = mocker.patch("cache_manager.cache_invalidate_catalog")

    client.post(
        "/api/catalog/check", json={"vendorId": vendor_id, "items": [{**item, "model": "ZZZ"}]}
    )
    invalidate.assert_not_called()

    client.post("/api/catalog/check", json={"vendorId": vendor_id, "items": [item]})
    invalidate.assert_called_once()


def test_catalog_check_validates_payload(client):
    response = client.post("/api/catalog/check", json={"vendorId": "x", "items": []})
    assert response.status_code == 400

    response = client.post("/api/catalog/check", json={"vendorId": 1, "items": "nope"})
    assert response.status_code == 400


def test_catalog_check_without_vendor(client):
    response = client.post("/api/catalog/check", json={"items": [{"brand": "A", "model": "B"}]})

    data = response.get_json()
    assert data["vendorIdMissing"] is True
    assert data["cacheMisses"] == 1


def test_catalog_stats_and_entries(client, vendor_ids):
    client.post(
        "/api/catalog/cache",
        json={
            "vendorId": vendor_ids["safilo"],
            "vendorName": "Safilo",
            "items": [{"brand": "CARRERA", "model": "8862", "color": "BLACK", "eye_size": "54"}],
        },
    )

    stats = client.get("/api/catalog/stats").get_json()
    assert stats["success"]
    assert stats["stats"]["totalItems"] == 1

    entries = client.get(f"/api/catalog/entries?vendorId={vendor_ids['safilo']}").get_json()
    assert entries["count"] == 1


def test_vendor_analytics_not_found(client, vendor_ids):
    assert client.get("/api/catalog/vendor/999999").status_code == 404


# ============================================================================
# INVENTORY
# ============================================================================


def test_inventory_receipt_flow(client, vendor_ids):
    client.post("/api/emails/process", json=_modern_optical_payload())

    unreceived = client.get("/api/inventory/3/unreceived/6817195").get_json()
    assert unreceived["count"] == 5
    first_two = [item["id"] for item in unreceived["items"][:2]]

    partial = client.post("/api/inventory/3/confirm/6817195", json={"frameIds": first_two})
    assert partial.status_code == 200
    assert partial.get_json()["order_status"] == "partial"
    assert partial.get_json()["pending_items"] == 3

    status = client.get("/api/inventory/3/receipt-status/6817195").get_json()
    assert status["received_items"] == 2

    rest = client.post("/api/inventory/3/confirm/6817195")
    assert rest.get_json()["order_status"] == "confirmed"

    sold = client.put(f"/api/inventory/3/{first_two[0]}/sold")
    assert sold.status_code == 200
    again = client.put(f"/api/inventory/3/{first_two[0]}/sold")
    assert again.status_code == 409

    current = client.get("/api/inventory/3?status=current").get_json()
    assert current["count"] == 4


def test_inventory_mark_received(client, vendor_ids):
    client.post("/api/emails/process", json=_modern_optical_payload())
    ids = [i["id"] for i in client.get("/api/inventory/3").get_json()["items"]]

    response = client.put("/api/inventory/3/frames/mark-received", json={"itemIds": ids[:1]})

    assert response.status_code == 200
    assert response.get_json()["order_statuses"] == {"6817195": "partial"}

    bad = client.put("/api/inventory/3/frames/mark-received", json={"itemIds": "1,2"})
    assert bad.status_code == 400


def test_inventory_not_found_and_bad_action(client, vendor_ids):
    assert client.post("/api/inventory/3/confirm/nope").status_code == 404
    assert client.get("/api/inventory/3/receipt-status/nope").status_code == 404
    assert client.put("/api/inventory/3/1/explode").status_code == 400
