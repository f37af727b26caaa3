# Overview: Pytest coverage for the ledger and system HTTP routes.

"""
Route Tests

Covers header-based tenant context, the error-to-status mapping, and that
every request returns its scoped connection clean.
"""

import uuid

import pytest
from sqlalchemy.exc import OperationalError

from stockledger.extensions import db
from stockledger.services import ledger_service
from stockledger.services.scoped_session import current_tenant_marker


def _headers(tenant, **extra):
    headers = {"X-Tenant-ID": str(tenant.id) if hasattr(tenant, "id") else tenant}
    headers.update(extra)
    return headers


class TestTenantHeaders:

    def test_missing_tenant_header_is_forbidden(self, client, db_session):
        resp = client.get("/api/ledger/transactions")
        assert resp.status_code == 403

    def test_malformed_tenant_is_not_found(self, client, db_session):
        resp = client.get("/api/ledger/transactions", headers=_headers("nope"))
        assert resp.status_code == 404

    def test_unknown_tenant_is_not_found(self, client, db_session, tenant_a):
        resp = client.get("/api/ledger/transactions", headers=_headers(str(uuid.uuid4())))
        assert resp.status_code == 404

    def test_inactive_tenant_is_forbidden(self, client, db_session, inactive_tenant):
        resp = client.get("/api/ledger/transactions", headers=_headers(inactive_tenant))
        assert resp.status_code == 403

    def test_malformed_device_header_is_bad_request(self, client, db_session, tenant_a):
        resp = client.get(
            "/api/ledger/transactions",
            headers=_headers(tenant_a, **{"X-Device-ID": "scanner-7"}),
        )
        assert resp.status_code == 400

    def test_scope_released_after_request(self, client, db_session, tenant_a):
        resp = client.get("/api/ledger/transactions", headers=_headers(tenant_a))
        assert resp.status_code == 200

        with db.engine.connect() as conn:
            assert current_tenant_marker(conn) is None


class TestLedgerRoutes:

    def test_receipt_created(self, client, db_session, tenant_a, product_a, warehouse_a):
        resp = client.post(
            "/api/ledger/receipts",
            headers=_headers(tenant_a, **{"X-User-ID": "11111111-1111-1111-1111-111111111111"}),
            json={"product_id": str(product_a.id), "quantity": 5, "location_id": str(warehouse_a.id)},
        )

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["product"]["quantity"] == 15
        assert body["transaction"]["transaction_type"] == "STOCK_RECEIPT"
        assert body["transaction"]["performed_by"] == "11111111-1111-1111-1111-111111111111"
        assert body["audit_record"]["metadata"]["quantity_after"] == 15
        assert body["cache_keys"]

    def test_oversell_is_conflict(self, client, db_session, tenant_a, product_a, store_a):
        resp = client.post(
            "/api/ledger/sales",
            headers=_headers(tenant_a),
            json={"product_id": str(product_a.id), "quantity": 11, "location_id": str(store_a.id)},
        )
        assert resp.status_code == 409
        assert "negative" in resp.get_json()["error"]

    def test_adjustment_and_transfer(
        self, client, db_session, tenant_a, product_a, warehouse_a, store_a
    ):
        resp = client.post(
            "/api/ledger/adjustments",
            headers=_headers(tenant_a),
            json={"product_id": str(product_a.id), "quantity": -3, "location_id": str(warehouse_a.id)},
        )
        assert resp.status_code == 201
        assert resp.get_json()["product"]["quantity"] == 7

        resp = client.post(
            "/api/ledger/transfers",
            headers=_headers(tenant_a),
            json={
                "product_id": str(product_a.id),
                "quantity": 2,
                "source_location_id": str(warehouse_a.id),
                "destination_location_id": str(store_a.id),
            },
        )
        assert resp.status_code == 201
        assert resp.get_json()["product"]["quantity"] == 7

    def test_scan_with_device(self, client, db_session, tenant_a, product_a, store_a, device_a):
        resp = client.post(
            "/api/ledger/scans",
            headers=_headers(tenant_a, **{"X-Device-ID": str(device_a.id)}),
            json={
                "barcode": product_a.barcode,
                "quantity": 1,
                "transaction_type": "SALE",
                "location_id": str(store_a.id),
            },
        )
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["transaction"]["device_id"] == str(device_a.id)
        assert body["product"]["quantity"] == 9

    @pytest.mark.parametrize(
        "payload",
        [
            {"quantity": 1, "location_id": "x"},
            {"product_id": "x", "quantity": True, "location_id": "x"},
            {"product_id": "x", "quantity": 1, "location_id": "x", "unit_cost": 5},
            ["not", "an", "object"],
        ],
    )
    def test_invalid_payload_is_bad_request(self, client, db_session, tenant_a, payload):
        resp = client.post("/api/ledger/receipts", headers=_headers(tenant_a), json=payload)
        assert resp.status_code == 400

    def test_other_tenants_product_is_not_found(
        self, client, db_session, tenant_a, product_b, warehouse_a
    ):
        resp = client.post(
            "/api/ledger/receipts",
            headers=_headers(tenant_a),
            json={"product_id": str(product_b.id), "quantity": 1, "location_id": str(warehouse_a.id)},
        )
        assert resp.status_code == 404

    def test_database_failure_is_generic_500(
        self, client, db_session, tenant_a, product_a, warehouse_a, monkeypatch
    ):
        def _db_down(*args, **kwargs):
            raise OperationalError("INSERT", {}, Exception("connection reset"))

        monkeypatch.setattr(ledger_service, "append_audit_record", _db_down)

        resp = client.post(
            "/api/ledger/receipts",
            headers=_headers(tenant_a),
            json={"product_id": str(product_a.id), "quantity": 1, "location_id": str(warehouse_a.id)},
        )
        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Internal server error"}

    def test_transactions_and_audit_read_back(
        self, client, db_session, tenant_a, product_a, warehouse_a
    ):
        created = client.post(
            "/api/ledger/receipts",
            headers=_headers(tenant_a),
            json={"product_id": str(product_a.id), "quantity": 2, "location_id": str(warehouse_a.id)},
        ).get_json()

        resp = client.get(
            f"/api/ledger/transactions?product_id={product_a.id}&limit=5000",
            headers=_headers(tenant_a),
        )
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["limit"] == 500
        assert [i["id"] for i in body["items"]] == [created["transaction"]["id"]]

        resp = client.get(
            f"/api/ledger/transactions/{created['transaction']['id']}/audit",
            headers=_headers(tenant_a),
        )
        assert resp.status_code == 200
        assert resp.get_json()["id"] == created["audit_record"]["id"]

        resp = client.get(
            f"/api/ledger/transactions/{uuid.uuid4()}/audit", headers=_headers(tenant_a)
        )
        assert resp.status_code == 404

    @pytest.mark.parametrize("limit", ["abc", "1.5", "1e3"])
    def test_malformed_limit_is_bad_request(self, client, db_session, tenant_a, limit):
        resp = client.get(f"/api/ledger/transactions?limit={limit}", headers=_headers(tenant_a))
        assert resp.status_code == 400
        assert "limit" in resp.get_json()["error"]

    def test_reports(self, client, db_session, tenant_a, product_a):
        for path in ("/api/ledger/reports/reorder", "/api/ledger/reports/value"):
            assert client.get(path, headers=_headers(tenant_a)).status_code == 200

        resp = client.get(
            "/api/ledger/reports/summary?group_by=daily", headers=_headers(tenant_a)
        )
        assert resp.status_code == 200
        assert resp.get_json()["group_by"] == "daily"

        resp = client.get(
            "/api/ledger/reports/summary?group_by=yearly", headers=_headers(tenant_a)
        )
        assert resp.status_code == 400


class TestSystemRoutes:

    def test_health(self, client, db_session, tenant_a):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["details"]["tenants"] == 1

    def test_version(self, client, db_session):
        resp = client.get("/version")
        assert resp.status_code == 200
        assert "api_version" in resp.get_json()
