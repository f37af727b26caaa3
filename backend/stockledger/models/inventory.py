from __future__ import annotations

import uuid

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .tenancy import TenantOwnedMixin

LOCATION_TYPES = ("WAREHOUSE", "STORE", "RESTAURANT", "SECTION", "SHELF", "OTHER")

STOCK_RECEIPT = "STOCK_RECEIPT"
STOCK_ADJUSTMENT = "STOCK_ADJUSTMENT"
TRANSFER = "TRANSFER"
SALE = "SALE"
TRANSACTION_TYPES = (STOCK_RECEIPT, STOCK_ADJUSTMENT, TRANSFER, SALE)


def _id(value) -> str | None:
    return str(value) if value is not None else None


class Category(TenantOwnedMixin, db.Model):
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "name", name="uq_categories_tenant_name"),
    )

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    parent_id = db.Column(db.Uuid, db.ForeignKey("categories.id"), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "tenant_id": str(self.tenant_id),
            "name": self.name,
            "description": self.description,
            "parent_id": _id(self.parent_id),
        }


class Location(TenantOwnedMixin, db.Model):
    """
    A place stock is received into, transferred between, or sold out of.

    Referenced (never owned) by ledger entries. There are no per-location
    quantity counters: on-hand stock is a single tenant-wide figure per
    product and transfers only record where stock moved.
    """
    __tablename__ = "locations"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "name", name="uq_locations_tenant_name"),
    )

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    name = db.Column(db.String(255), nullable=False)
    location_type = db.Column(db.String(32), nullable=False, default="WAREHOUSE")
    description = db.Column(db.Text, nullable=True)
    address = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Location id={self.id} name={self.name!r} type={self.location_type}>"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "tenant_id": str(self.tenant_id),
            "name": self.name,
            "location_type": self.location_type,
            "description": self.description,
            "address": self.address,
        }


class Product(TenantOwnedMixin, db.Model):
    """
    A stocked item.

    QUANTITY INVARIANT: quantity >= 0 at all times. The ledger enforces it
    at the point of mutation with a conditional UPDATE; the CHECK constraint
    is the last line of defense. quantity is never written directly outside
    a ledger operation.

    SKU and barcode are unique within a tenant, not globally.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "sku", name="uq_products_tenant_sku"),
        db.UniqueConstraint("tenant_id", "barcode", name="uq_products_tenant_barcode"),
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_nonnegative"),
        db.Index("ix_products_tenant_name", "tenant_id", "name"),
    )

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)

    sku = db.Column(db.String(100), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    barcode = db.Column(db.String(100), nullable=True, index=True)
    barcode_type = db.Column(db.String(32), nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    reorder_point = db.Column(db.Integer, nullable=True)

    # Authoritative storage in cents
    cost_cents = db.Column(db.Integer, nullable=True)
    price_cents = db.Column(db.Integer, nullable=True)

    category_id = db.Column(db.Uuid, db.ForeignKey("categories.id"), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "tenant_id": str(self.tenant_id),
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "barcode": self.barcode,
            "barcode_type": self.barcode_type,
            "quantity": self.quantity,
            "reorder_point": self.reorder_point,
            "cost_cents": self.cost_cents,
            "price_cents": self.price_cents,
            "category_id": _id(self.category_id),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryTransaction(TenantOwnedMixin, db.Model):
    """
    Immutable ledger entry: the system of record for one stock event.

    - quantity is signed: receipts positive, sales negative, adjustments either.
    - Direction is also encoded by which location column is populated.
    - Rows are never updated or deleted (enforced by the scoped session).
    """
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.Index("ix_invtx_tenant_created", "tenant_id", "created_at"),
        db.Index("ix_invtx_tenant_product_created", "tenant_id", "product_id", "created_at"),
    )

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)

    transaction_type = db.Column(db.String(32), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    product_id = db.Column(
        db.Uuid, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    source_location_id = db.Column(db.Uuid, db.ForeignKey("locations.id"), nullable=True)
    destination_location_id = db.Column(db.Uuid, db.ForeignKey("locations.id"), nullable=True)

    # Opaque actor references resolved by the auth collaborator
    performed_by = db.Column(db.Uuid, nullable=True)
    device_id = db.Column(db.Uuid, db.ForeignKey("devices.id"), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    product = db.relationship("Product")

    def __repr__(self) -> str:
        return (
            f"<InventoryTransaction id={self.id} type={self.transaction_type} "
            f"quantity={self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "tenant_id": str(self.tenant_id),
            "transaction_type": self.transaction_type,
            "quantity": self.quantity,
            "product_id": str(self.product_id),
            "source_location_id": _id(self.source_location_id),
            "destination_location_id": _id(self.destination_location_id),
            "performed_by": _id(self.performed_by),
            "device_id": _id(self.device_id),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
