# backend/stockledger/routes/ledger.py
"""
Inventory ledger routes.

SECURITY: Every route requires tenant context from the gateway headers
(X-Tenant-ID, optional X-User-ID / X-Device-ID). Permissions are resolved
upstream; the ledger receives a pre-authorized actor.

Errors are raised as LedgerError subclasses and mapped to HTTP status codes
by the app-level handler.

Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- start/end filtering is inclusive.
"""
from flask import Blueprint, current_app, g, request

from ..decorators import require_tenant_context
from ..errors import NotFoundError, ValidationError
from ..services import audit_service, ledger_service, reporting_service
from ..services.tenant_service import get_request_tenant_context
from ..validation import PayloadPolicy, coerce_int, coerce_text, validate_payload


ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/ledger")


def _text(value, field):
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value.strip()


RECEIPT_POLICY = PayloadPolicy(
    fields={"product_id": _text, "quantity": coerce_int, "location_id": _text, "notes": coerce_text},
    required=frozenset({"product_id", "quantity", "location_id"}),
)

ADJUSTMENT_POLICY = RECEIPT_POLICY

SALE_POLICY = RECEIPT_POLICY

TRANSFER_POLICY = PayloadPolicy(
    fields={
        "product_id": _text,
        "quantity": coerce_int,
        "source_location_id": _text,
        "destination_location_id": _text,
        "notes": coerce_text,
    },
    required=frozenset({"product_id", "quantity", "source_location_id", "destination_location_id"}),
)

SCAN_POLICY = PayloadPolicy(
    fields={
        "barcode": _text,
        "quantity": coerce_int,
        "transaction_type": _text,
        "location_id": _text,
        "notes": coerce_text,
    },
    required=frozenset({"barcode", "quantity", "transaction_type", "location_id"}),
)


def _scope():
    return get_request_tenant_context().get_scope()


def _payload(policy: PayloadPolicy) -> dict:
    return validate_payload(request.get_json(silent=True), policy)


@ledger_bp.post("/receipts")
@require_tenant_context
def receive_stock_route():
    data = _payload(RECEIPT_POLICY)
    result = ledger_service.receive_stock(
        _scope(),
        product_id=data["product_id"],
        quantity=data["quantity"],
        location_id=data["location_id"],
        actor=g.actor,
        notes=data.get("notes"),
    )
    return result.to_dict(), 201


@ledger_bp.post("/adjustments")
@require_tenant_context
def adjust_stock_route():
    data = _payload(ADJUSTMENT_POLICY)
    result = ledger_service.adjust_stock(
        _scope(),
        product_id=data["product_id"],
        quantity=data["quantity"],
        location_id=data["location_id"],
        actor=g.actor,
        notes=data.get("notes"),
    )
    return result.to_dict(), 201


@ledger_bp.post("/sales")
@require_tenant_context
def record_sale_route():
    data = _payload(SALE_POLICY)
    result = ledger_service.record_sale(
        _scope(),
        product_id=data["product_id"],
        quantity=data["quantity"],
        location_id=data["location_id"],
        actor=g.actor,
        notes=data.get("notes"),
    )
    return result.to_dict(), 201


@ledger_bp.post("/transfers")
@require_tenant_context
def transfer_stock_route():
    data = _payload(TRANSFER_POLICY)
    result = ledger_service.transfer_stock(
        _scope(),
        product_id=data["product_id"],
        quantity=data["quantity"],
        source_location_id=data["source_location_id"],
        destination_location_id=data["destination_location_id"],
        actor=g.actor,
        notes=data.get("notes"),
    )
    return result.to_dict(), 201


@ledger_bp.post("/scans")
@require_tenant_context
def record_scan_route():
    data = _payload(SCAN_POLICY)
    result = ledger_service.record_scan(
        _scope(),
        barcode=data["barcode"],
        quantity=data["quantity"],
        transaction_type=data["transaction_type"],
        location_id=data["location_id"],
        actor=g.actor,
        notes=data.get("notes"),
    )
    return result.to_dict(), 201


@ledger_bp.get("/transactions")
@require_tenant_context
def list_transactions_route():
    limit_max = current_app.config["LEDGER_LIST_LIMIT_MAX"]
    raw_limit = request.args.get("limit")
    limit = 100 if raw_limit is None else coerce_int(raw_limit, "limit")
    limit = max(1, min(limit, limit_max))

    rows = ledger_service.list_transactions(
        _scope(),
        product_id=request.args.get("product_id"),
        transaction_type=request.args.get("transaction_type"),
        start=request.args.get("start"),
        end=request.args.get("end"),
        limit=limit,
    )
    return {"items": [r.to_dict() for r in rows], "limit": limit}, 200


@ledger_bp.get("/transactions/<transaction_id>/audit")
@require_tenant_context
def get_transaction_audit_route(transaction_id):
    record = audit_service.get_audit_record_for_transaction(
        _scope(), transaction_id
    )
    if record is None:
        raise NotFoundError("Audit record not found")
    return record.to_dict(), 200


@ledger_bp.get("/reports/reorder")
@require_tenant_context
def reorder_report_route():
    rows = reporting_service.products_below_reorder_point(_scope())
    return {"items": rows}, 200


@ledger_bp.get("/reports/value")
@require_tenant_context
def value_report_route():
    return reporting_service.inventory_value_report(_scope()), 200


@ledger_bp.get("/reports/summary")
@require_tenant_context
def summary_report_route():
    report = reporting_service.transaction_summary(
        _scope(),
        start=request.args.get("start"),
        end=request.args.get("end"),
        group_by=request.args.get("group_by", "transaction_type"),
    )
    return report, 200
