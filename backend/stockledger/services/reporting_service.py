# Overview: Tenant-scoped reporting reads over products and the inventory ledger.

from __future__ import annotations

from collections import defaultdict
from datetime import datetime

from sqlalchemy import select

from ..errors import ValidationError
from ..models import Category, InventoryTransaction, Product
from ..time_utils import period_key, to_utc_z
from ..validation import coerce_datetime

SUMMARY_GROUPS = ("transaction_type", "product", "location", "daily", "weekly", "monthly")


def _parse_range(start, end) -> tuple[datetime | None, datetime | None]:
    start_dt = coerce_datetime(start, "start")
    end_dt = coerce_datetime(end, "end")
    if start_dt and end_dt and start_dt > end_dt:
        raise ValidationError("start must be before end")
    return start_dt, end_dt


def products_below_reorder_point(scope) -> list[dict]:
    """
    Active products at or below their reorder point, most depleted first.

    fill_ratio = quantity / reorder_point (0 when the reorder point is 0).
    """
    products = scope.execute(
        select(Product).where(
            Product.tenant_id == scope.tenant_id,
            Product.is_active.is_(True),
            Product.reorder_point.isnot(None),
            Product.quantity <= Product.reorder_point,
        )
    ).scalars().all()

    rows = []
    for product in products:
        ratio = (product.quantity / product.reorder_point) if product.reorder_point > 0 else 0.0
        rows.append(
            {
                "product_id": str(product.id),
                "sku": product.sku,
                "name": product.name,
                "quantity": product.quantity,
                "reorder_point": product.reorder_point,
                "fill_ratio": round(ratio, 4),
            }
        )

    rows.sort(key=lambda r: (r["fill_ratio"], r["name"]))
    return rows


def inventory_value_report(scope) -> dict:
    """
    On-hand value at cost (quantity * cost_cents) for active products.

    Products without a cost are counted but contribute no value.
    """
    products = scope.execute(
        select(Product)
        .where(Product.tenant_id == scope.tenant_id, Product.is_active.is_(True))
        .order_by(Product.name.asc())
    ).scalars().all()

    categories = {
        c.id: c.name
        for c in scope.execute(
            select(Category).where(Category.tenant_id == scope.tenant_id)
        ).scalars()
    }

    total_value_cents = 0
    total_units = 0
    by_category: dict = {}
    for product in products:
        value = product.quantity * product.cost_cents if product.cost_cents is not None else 0
        total_value_cents += value
        total_units += product.quantity

        key = str(product.category_id) if product.category_id else None
        bucket = by_category.setdefault(
            key,
            {
                "category_id": key,
                "name": categories.get(product.category_id, "Uncategorized"),
                "product_count": 0,
                "units": 0,
                "value_cents": 0,
            },
        )
        bucket["product_count"] += 1
        bucket["units"] += product.quantity
        bucket["value_cents"] += value

    return {
        "product_count": len(products),
        "total_units": total_units,
        "total_value_cents": total_value_cents,
        "by_category": sorted(by_category.values(), key=lambda b: -b["value_cents"]),
    }


def _summary_keys(tx: InventoryTransaction, group_by: str) -> list[str]:
    if group_by == "transaction_type":
        return [tx.transaction_type]
    if group_by == "product":
        return [str(tx.product_id)]
    if group_by == "location":
        # A transfer counts against both ends
        ids = [tx.source_location_id, tx.destination_location_id]
        return [str(i) for i in ids if i is not None]
    return [period_key(tx.created_at, group_by)]


def transaction_summary(scope, *, start=None, end=None, group_by: str = "transaction_type") -> dict:
    """
    Ledger activity grouped by a dimension.

    Counts entries and sums absolute quantities; date bounds are inclusive.
    Periods are bucketed in Python so results match on every engine.
    """
    if group_by not in SUMMARY_GROUPS:
        raise ValidationError(f"group_by must be one of {', '.join(SUMMARY_GROUPS)}")
    start_dt, end_dt = _parse_range(start, end)

    stmt = select(InventoryTransaction).where(InventoryTransaction.tenant_id == scope.tenant_id)
    if start_dt:
        stmt = stmt.where(InventoryTransaction.created_at >= start_dt)
    if end_dt:
        stmt = stmt.where(InventoryTransaction.created_at <= end_dt)

    groups: dict[str, dict] = defaultdict(lambda: {"count": 0, "total_quantity": 0})
    total = 0
    for tx in scope.execute(stmt).scalars():
        total += 1
        for key in _summary_keys(tx, group_by):
            groups[key]["count"] += 1
            groups[key]["total_quantity"] += abs(tx.quantity)

    return {
        "group_by": group_by,
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "transaction_count": total,
        "groups": [{"key": k, **v} for k, v in sorted(groups.items())],
    }
