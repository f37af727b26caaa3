# Overview: Inventory ledger operations; one atomic unit of work per business action.

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import InvariantViolation, NotFoundError, ValidationError
from ..models import (
    SALE,
    STOCK_ADJUSTMENT,
    STOCK_RECEIPT,
    TRANSACTION_TYPES,
    TRANSFER,
    AuditRecord,
    InventoryTransaction,
    Location,
    Product,
)
from ..validation import (
    coerce_datetime,
    coerce_quantity,
    coerce_text,
    coerce_uuid,
    coerce_uuid_or_none,
)
from .audit_service import append_audit_record
from .cache_service import inventory_cache_keys
from .concurrency import apply_quantity_delta
from .repositories import DeviceRepository, LocationRepository, ProductRepository
"""
Inventory Ledger Invariants (authoritative)

State:
- The only mutable state is Product.quantity. It is changed exclusively by
  the operations below, each of which is ONE transaction on a tenant scope:
  ledger insert + conditional quantity update + audit insert.

Business invariants:
- quantity >= 0 at all times. Checked up front for a clear error, then
  enforced by `UPDATE ... WHERE quantity + delta >= 0`; zero affected rows
  means a concurrent writer won and the operation fails with
  InvariantViolation. Never read-then-write.
- STOCK_RECEIPT: +quantity, destination location.
- STOCK_ADJUSTMENT: signed non-zero quantity; source location when negative,
  destination when positive.
- SALE: -quantity, source location.
- TRANSFER: records where stock moved; never touches Product.quantity.
- Inactive products accept adjustments and transfers (corrections) only.

Failure semantics:
- Any exception inside the unit of work rolls everything back: no ledger row
  without its audit row and quantity change, and vice versa.
- Nothing is retried here; NotFound/InvariantViolation are deterministic.
"""

SCAN_ADJUSTMENT_NOTE = "Adjusted via barcode scan"

# Barcode scanners send either the canonical ledger type or the short form
SCAN_TRANSACTION_TYPES = {
    STOCK_RECEIPT: STOCK_RECEIPT,
    "RECEIPT": STOCK_RECEIPT,
    STOCK_ADJUSTMENT: STOCK_ADJUSTMENT,
    "ADJUSTMENT": STOCK_ADJUSTMENT,
    SALE: SALE,
}


@dataclass(frozen=True)
class Actor:
    """
    Pre-authorized caller of a ledger operation.

    Resolved by the auth collaborator. The ledger stores both ids opaquely and
    only re-validates that a device belongs to the tenant and is ACTIVE.
    """
    user_id: uuid.UUID | None = None
    device_id: uuid.UUID | None = None

    def __post_init__(self):
        if self.user_id is not None:
            object.__setattr__(self, "user_id", coerce_uuid(self.user_id, "user_id"))
        if self.device_id is not None:
            object.__setattr__(self, "device_id", coerce_uuid(self.device_id, "device_id"))


SYSTEM_ACTOR = Actor()


@dataclass
class LedgerResult:
    transaction: InventoryTransaction
    product: Product
    audit_record: AuditRecord
    cache_keys: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "transaction": self.transaction.to_dict(),
            "product": self.product.to_dict(),
            "audit_record": self.audit_record.to_dict(),
            "cache_keys": list(self.cache_keys),
        }


# =============================================================================
# Public operations
# =============================================================================

def receive_stock(
    scope,
    *,
    product_id,
    quantity,
    location_id,
    actor: Actor | None = None,
    notes: str | None = None,
) -> LedgerResult:
    """Receive stock into a location (STOCK_RECEIPT, +quantity)."""
    qty = coerce_quantity(quantity)
    notes = coerce_text(notes, "notes")
    actor = actor or SYSTEM_ACTOR

    with scope.atomic() as session:
        _require_actor(session, scope.tenant_id, actor)
        product = _require_product(session, scope.tenant_id, product_id, lock=True)
        result = _receive_inner(
            session,
            tenant_id=scope.tenant_id,
            product=product,
            quantity=qty,
            location_id=location_id,
            actor=actor,
            notes=notes,
        )

    _log_committed(scope.tenant_id, result)
    return result


def adjust_stock(
    scope,
    *,
    product_id,
    quantity,
    location_id,
    actor: Actor | None = None,
    notes: str | None = None,
) -> LedgerResult:
    """
    Apply a signed correction (STOCK_ADJUSTMENT).

    Negative adjustments are recorded against the source location, positive
    ones against the destination. Allowed on inactive products.
    """
    qty = coerce_quantity(quantity, allow_negative=True)
    notes = coerce_text(notes, "notes")
    actor = actor or SYSTEM_ACTOR

    with scope.atomic() as session:
        _require_actor(session, scope.tenant_id, actor)
        product = _require_product(
            session, scope.tenant_id, product_id, require_active=False, lock=True
        )
        result = _adjust_inner(
            session,
            tenant_id=scope.tenant_id,
            product=product,
            quantity=qty,
            location_id=location_id,
            actor=actor,
            notes=notes,
        )

    _log_committed(scope.tenant_id, result)
    return result


def record_sale(
    scope,
    *,
    product_id,
    quantity,
    location_id,
    actor: Actor | None = None,
    notes: str | None = None,
) -> LedgerResult:
    """Sell stock out of a location (SALE, -quantity)."""
    qty = coerce_quantity(quantity)
    notes = coerce_text(notes, "notes")
    actor = actor or SYSTEM_ACTOR

    with scope.atomic() as session:
        _require_actor(session, scope.tenant_id, actor)
        product = _require_product(session, scope.tenant_id, product_id, lock=True)
        result = _sale_inner(
            session,
            tenant_id=scope.tenant_id,
            product=product,
            quantity=qty,
            location_id=location_id,
            actor=actor,
            notes=notes,
        )

    _log_committed(scope.tenant_id, result)
    return result


def transfer_stock(
    scope,
    *,
    product_id,
    quantity,
    source_location_id,
    destination_location_id,
    actor: Actor | None = None,
    notes: str | None = None,
) -> LedgerResult:
    """
    Record stock moving between two locations (TRANSFER).

    The tenant-wide on-hand quantity is unchanged; there are no
    per-location counters, so no on-hand check applies.
    """
    qty = coerce_quantity(quantity)
    notes = coerce_text(notes, "notes")
    actor = actor or SYSTEM_ACTOR

    with scope.atomic() as session:
        _require_actor(session, scope.tenant_id, actor)
        product = _require_product(session, scope.tenant_id, product_id, require_active=False)
        source = _require_location(session, scope.tenant_id, source_location_id)
        destination = _require_location(session, scope.tenant_id, destination_location_id)
        if source.id == destination.id:
            raise ValidationError("source and destination locations must differ")

        result = _post_entry(
            session,
            tenant_id=scope.tenant_id,
            product=product,
            transaction_type=TRANSFER,
            quantity=qty,
            delta=0,
            actor=actor,
            source=source,
            destination=destination,
            notes=notes,
        )

    _log_committed(scope.tenant_id, result)
    return result


def record_scan(
    scope,
    *,
    barcode: str,
    quantity,
    transaction_type: str,
    location_id,
    actor: Actor | None = None,
    notes: str | None = None,
) -> LedgerResult:
    """
    Barcode-triggered operation.

    Resolves the product by barcode and delegates to receipt, adjustment or
    sale inside the same unit of work. Scanned products must be active.
    """
    if not isinstance(barcode, str) or not barcode.strip():
        raise ValidationError("barcode is required")
    if not isinstance(transaction_type, str):
        raise ValidationError("transaction_type is required")

    resolved_type = SCAN_TRANSACTION_TYPES.get(transaction_type.strip().upper())
    if resolved_type is None:
        raise ValidationError(f"Unsupported transaction type for scan: {transaction_type}")

    qty = coerce_quantity(quantity, allow_negative=resolved_type == STOCK_ADJUSTMENT)
    notes = coerce_text(notes, "notes")
    actor = actor or SYSTEM_ACTOR
    scan_metadata = {"source": "barcode_scan", "barcode": barcode.strip()}

    with scope.atomic() as session:
        _require_actor(session, scope.tenant_id, actor)

        found = ProductRepository(session).find_by_barcode(barcode, scope.tenant_id)
        if found is None:
            raise NotFoundError("Product not found")
        product = _require_product(session, scope.tenant_id, found.id, lock=True)

        if resolved_type == STOCK_RECEIPT:
            result = _receive_inner(
                session,
                tenant_id=scope.tenant_id,
                product=product,
                quantity=qty,
                location_id=location_id,
                actor=actor,
                notes=notes,
                extra_metadata=scan_metadata,
            )
        elif resolved_type == STOCK_ADJUSTMENT:
            result = _adjust_inner(
                session,
                tenant_id=scope.tenant_id,
                product=product,
                quantity=qty,
                location_id=location_id,
                actor=actor,
                notes=notes or SCAN_ADJUSTMENT_NOTE,
                extra_metadata=scan_metadata,
            )
        else:
            result = _sale_inner(
                session,
                tenant_id=scope.tenant_id,
                product=product,
                quantity=qty,
                location_id=location_id,
                actor=actor,
                notes=notes,
                extra_metadata=scan_metadata,
            )

    _log_committed(scope.tenant_id, result)
    return result


# =============================================================================
# Reads
# =============================================================================

def get_product_quantity(scope, product_id) -> int:
    product = ProductRepository(scope.session).find_by_id(product_id, scope.tenant_id)
    if product is None:
        raise NotFoundError("Product not found")
    return int(
        scope.execute(
            select(Product.quantity).where(
                Product.id == product.id,
                Product.tenant_id == scope.tenant_id,
            )
        ).scalar_one()
    )


def list_transactions(
    scope,
    *,
    product_id=None,
    transaction_type: str | None = None,
    start=None,
    end=None,
    limit: int = 200,
) -> list[InventoryTransaction]:
    """Ledger entries for the scope's tenant, oldest first. Date bounds are inclusive."""
    start_dt = coerce_datetime(start, "start")
    end_dt = coerce_datetime(end, "end")
    if transaction_type is not None and transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(f"transaction_type must be one of {', '.join(TRANSACTION_TYPES)}")

    stmt = select(InventoryTransaction).where(InventoryTransaction.tenant_id == scope.tenant_id)

    if product_id is not None:
        key = coerce_uuid_or_none(product_id)
        if key is None:
            return []
        stmt = stmt.where(InventoryTransaction.product_id == key)
    if transaction_type is not None:
        stmt = stmt.where(InventoryTransaction.transaction_type == transaction_type)
    if start_dt is not None:
        stmt = stmt.where(InventoryTransaction.created_at >= start_dt)
    if end_dt is not None:
        stmt = stmt.where(InventoryTransaction.created_at <= end_dt)

    stmt = stmt.order_by(
        InventoryTransaction.created_at.asc(),
        InventoryTransaction.id.asc(),
    ).limit(limit)
    return list(scope.execute(stmt).scalars())


# =============================================================================
# Unit-of-work internals (caller owns the transaction)
# =============================================================================

def _receive_inner(
    session: Session,
    *,
    tenant_id: uuid.UUID,
    product: Product,
    quantity: int,
    location_id,
    actor: Actor,
    notes: str | None,
    extra_metadata: dict | None = None,
) -> LedgerResult:
    _require_active(product)
    destination = _require_location(session, tenant_id, location_id)
    return _post_entry(
        session,
        tenant_id=tenant_id,
        product=product,
        transaction_type=STOCK_RECEIPT,
        quantity=quantity,
        delta=quantity,
        actor=actor,
        destination=destination,
        notes=notes,
        extra_metadata=extra_metadata,
    )


def _adjust_inner(
    session: Session,
    *,
    tenant_id: uuid.UUID,
    product: Product,
    quantity: int,
    location_id,
    actor: Actor,
    notes: str | None,
    extra_metadata: dict | None = None,
) -> LedgerResult:
    location = _require_location(session, tenant_id, location_id)
    return _post_entry(
        session,
        tenant_id=tenant_id,
        product=product,
        transaction_type=STOCK_ADJUSTMENT,
        quantity=quantity,
        delta=quantity,
        actor=actor,
        source=location if quantity < 0 else None,
        destination=location if quantity > 0 else None,
        notes=notes,
        extra_metadata=extra_metadata,
    )


def _sale_inner(
    session: Session,
    *,
    tenant_id: uuid.UUID,
    product: Product,
    quantity: int,
    location_id,
    actor: Actor,
    notes: str | None,
    extra_metadata: dict | None = None,
) -> LedgerResult:
    _require_active(product)
    source = _require_location(session, tenant_id, location_id)
    return _post_entry(
        session,
        tenant_id=tenant_id,
        product=product,
        transaction_type=SALE,
        quantity=-quantity,
        delta=-quantity,
        actor=actor,
        source=source,
        notes=notes,
        extra_metadata=extra_metadata,
    )


def _post_entry(
    session: Session,
    *,
    tenant_id: uuid.UUID,
    product: Product,
    transaction_type: str,
    quantity: int,
    delta: int,
    actor: Actor,
    source: Location | None = None,
    destination: Location | None = None,
    notes: str | None = None,
    extra_metadata: dict | None = None,
) -> LedgerResult:
    """
    Ledger insert + conditional quantity update + audit insert.

    CRITICAL: Must run inside the caller's transaction. Raising anywhere
    here rolls back all three writes together.
    """
    if delta and product.quantity + delta < 0:
        raise InvariantViolation(
            f"{transaction_type} of {abs(delta)} would make on-hand negative "
            f"(on hand: {product.quantity})"
        )

    tx = InventoryTransaction(
        tenant_id=tenant_id,
        transaction_type=transaction_type,
        quantity=quantity,
        product_id=product.id,
        source_location_id=source.id if source else None,
        destination_location_id=destination.id if destination else None,
        performed_by=actor.user_id,
        device_id=actor.device_id,
        notes=notes,
    )
    session.add(tx)
    session.flush()

    if delta:
        after = apply_quantity_delta(
            session, tenant_id=tenant_id, product_id=product.id, delta=delta
        )
        if after is None:
            # A concurrent writer committed first; its value fails the guard
            raise InvariantViolation(
                f"{transaction_type} of {abs(delta)} would make on-hand negative"
            )
        session.refresh(product)
    else:
        after = product.quantity

    metadata = {
        "product_id": str(product.id),
        "sku": product.sku,
        "quantity": quantity,
        "delta": delta,
        "quantity_before": after - delta,
        "quantity_after": after,
        "source_location_id": str(source.id) if source else None,
        "destination_location_id": str(destination.id) if destination else None,
        "notes": notes,
    }
    if extra_metadata:
        metadata.update(extra_metadata)

    audit = append_audit_record(session, transaction=tx, actor=actor, metadata=metadata)

    return LedgerResult(
        transaction=tx,
        product=product,
        audit_record=audit,
        cache_keys=inventory_cache_keys(tenant_id, product.id, product.category_id),
    )


def _require_product(
    session: Session,
    tenant_id: uuid.UUID,
    product_id,
    *,
    require_active: bool = True,
    lock: bool = False,
) -> Product:
    repo = ProductRepository(session)
    product = repo.lock_by_id(product_id, tenant_id) if lock else repo.find_by_id(product_id, tenant_id)
    if product is None:
        raise NotFoundError("Product not found")
    if require_active:
        _require_active(product)
    return product


def _require_active(product: Product) -> None:
    if not product.is_active:
        raise ValidationError("Product is inactive")


def _require_location(session: Session, tenant_id: uuid.UUID, location_id) -> Location:
    if location_id is None:
        raise ValidationError("location is required")
    location = LocationRepository(session).find_by_id(location_id, tenant_id)
    if location is None:
        raise NotFoundError("Location not found")
    return location


def _require_actor(session: Session, tenant_id: uuid.UUID, actor: Actor) -> None:
    if actor.device_id is None:
        return
    if DeviceRepository(session).find_active_by_id(actor.device_id, tenant_id) is None:
        raise NotFoundError("Device not found")


def _log_committed(tenant_id: uuid.UUID, result: LedgerResult) -> None:
    tx = result.transaction
    current_app.logger.info(
        "Ledger %s committed tenant=%s product=%s delta=%s quantity=%s tx=%s",
        tx.transaction_type,
        tenant_id,
        tx.product_id,
        result.audit_record.snapshot.get("delta"),
        result.product.quantity,
        tx.id,
    )
