# Overview: Pytest coverage for tenant-scoped reporting reads.

import pytest

from stockledger.errors import ValidationError
from stockledger.models import Category
from stockledger.services import ledger_service, reporting_service
from stockledger.services.cache_service import inventory_cache_keys


@pytest.fixture
def beverages(db_session, tenant_a):
    category = Category(tenant_id=tenant_a.id, name="Beverages")
    db_session.add(category)
    db_session.commit()
    return category


class TestReorderReport:

    def test_lists_products_at_or_below_reorder_point(
        self, db_session, tenant_a, tenant_b, scope_a, make_product
    ):
        make_product(tenant_a, "LOW-1", quantity=2, reorder_point=10)
        make_product(tenant_a, "LOW-2", quantity=5, reorder_point=5)
        make_product(tenant_a, "OK-1", quantity=50, reorder_point=10)
        make_product(tenant_a, "NONE-1", quantity=0)
        make_product(tenant_a, "GONE-1", quantity=0, reorder_point=3, is_active=False)
        make_product(tenant_b, "LOW-B", quantity=0, reorder_point=10)

        rows = reporting_service.products_below_reorder_point(scope_a)

        assert [r["sku"] for r in rows] == ["LOW-1", "LOW-2"]
        assert rows[0]["fill_ratio"] == 0.2
        assert rows[1]["fill_ratio"] == 1.0


class TestValueReport:

    def test_value_by_category(self, db_session, tenant_a, scope_a, make_product, beverages):
        make_product(tenant_a, "BEV-1", quantity=10, cost_cents=150, category_id=beverages.id)
        make_product(tenant_a, "BEV-2", quantity=4, cost_cents=500, category_id=beverages.id)
        make_product(tenant_a, "MISC-1", quantity=3, cost_cents=100)
        make_product(tenant_a, "FREE-1", quantity=9)

        report = reporting_service.inventory_value_report(scope_a)

        assert report["product_count"] == 4
        assert report["total_units"] == 26
        assert report["total_value_cents"] == 1500 + 2000 + 300

        by_name = {b["name"]: b for b in report["by_category"]}
        assert by_name["Beverages"]["value_cents"] == 3500
        assert by_name["Beverages"]["product_count"] == 2
        assert by_name["Uncategorized"]["value_cents"] == 300
        assert by_name["Uncategorized"]["product_count"] == 2
        assert report["by_category"][0]["name"] == "Beverages"


class TestTransactionSummary:

    def test_group_by_transaction_type(
        self, db_session, scope_a, product_a, warehouse_a, store_a
    ):
        ledger_service.receive_stock(
            scope_a, product_id=product_a.id, quantity=5, location_id=warehouse_a.id
        )
        ledger_service.record_sale(
            scope_a, product_id=product_a.id, quantity=3, location_id=store_a.id
        )
        ledger_service.record_sale(
            scope_a, product_id=product_a.id, quantity=2, location_id=store_a.id
        )

        report = reporting_service.transaction_summary(scope_a, group_by="transaction_type")

        assert report["transaction_count"] == 3
        groups = {g["key"]: g for g in report["groups"]}
        assert groups["SALE"] == {"key": "SALE", "count": 2, "total_quantity": 5}
        assert groups["STOCK_RECEIPT"]["total_quantity"] == 5

    def test_group_by_location_counts_both_transfer_ends(
        self, db_session, scope_a, product_a, warehouse_a, store_a
    ):
        ledger_service.transfer_stock(
            scope_a,
            product_id=product_a.id,
            quantity=4,
            source_location_id=warehouse_a.id,
            destination_location_id=store_a.id,
        )

        report = reporting_service.transaction_summary(scope_a, group_by="location")

        keys = {g["key"] for g in report["groups"]}
        assert keys == {str(warehouse_a.id), str(store_a.id)}

    def test_period_grouping(self, db_session, scope_a, product_a, warehouse_a):
        result = ledger_service.receive_stock(
            scope_a, product_id=product_a.id, quantity=1, location_id=warehouse_a.id
        )
        created = result.transaction.created_at

        daily = reporting_service.transaction_summary(scope_a, group_by="daily")
        monthly = reporting_service.transaction_summary(scope_a, group_by="monthly")
        weekly = reporting_service.transaction_summary(scope_a, group_by="weekly")

        assert daily["groups"][0]["key"] == created.strftime("%Y-%m-%d")
        assert monthly["groups"][0]["key"] == created.strftime("%Y-%m")
        assert weekly["groups"][0]["key"].startswith(str(created.isocalendar()[0]))

    def test_date_range_is_inclusive_and_validated(
        self, db_session, scope_a, product_a, warehouse_a
    ):
        ledger_service.receive_stock(
            scope_a, product_id=product_a.id, quantity=1, location_id=warehouse_a.id
        )

        empty = reporting_service.transaction_summary(
            scope_a, start="2000-01-01T00:00:00Z", end="2000-12-31T23:59:59Z"
        )
        assert empty["transaction_count"] == 0
        assert empty["start"] == "2000-01-01T00:00:00Z"

        with pytest.raises(ValidationError):
            reporting_service.transaction_summary(
                scope_a, start="2001-01-01T00:00:00Z", end="2000-01-01T00:00:00Z"
            )

    def test_unknown_group_rejected(self, db_session, scope_a):
        with pytest.raises(ValidationError):
            reporting_service.transaction_summary(scope_a, group_by="hourly")


class TestCacheKeys:

    def test_keys_are_namespaced_by_tenant(self):
        keys = inventory_cache_keys("t1", "p1", "c1")
        assert keys == [
            "tenant:t1:inventory:product:p1*",
            "tenant:t1:inventory:items*",
            "tenant:t1:inventory:reports*",
            "tenant:t1:inventory:category:c1*",
        ]
        assert "tenant:t1:inventory:category:c1*" not in inventory_cache_keys("t1", "p1")
