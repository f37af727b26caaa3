# Overview: Tenant-scoped entity repositories used by the ledger for reference validation.

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import Category, Device, Location, Product, Tenant
from ..validation import coerce_uuid_or_none
"""
Repository contract (authoritative)

- find_by_id(id, tenant_id) returns the entity or None.
- None is returned identically whether the row is absent, belongs to another
  tenant, or the id is malformed. Callers cannot use it to discover other tenants.
- Exact matches only. No business rules live here.
- Every query filters by tenant_id explicitly, on top of the scoped
  session's own restriction.
"""


class TenantOwnedRepository:
    model = None

    def __init__(self, session: Session):
        self.session = session

    def find_by_id(self, entity_id, tenant_id: uuid.UUID):
        key = coerce_uuid_or_none(entity_id)
        if key is None:
            return None
        return self._first(self.model.id == key, tenant_id=tenant_id)

    def _first(self, *criteria, tenant_id: uuid.UUID):
        stmt = select(self.model).where(self.model.tenant_id == tenant_id, *criteria)
        return self.session.scalars(stmt.limit(1)).first()


class ProductRepository(TenantOwnedRepository):
    model = Product

    def find_by_barcode(self, barcode: str, tenant_id: uuid.UUID) -> Product | None:
        if not barcode or not isinstance(barcode, str):
            return None
        return self._first(Product.barcode == barcode.strip(), tenant_id=tenant_id)

    def find_by_sku(self, sku: str, tenant_id: uuid.UUID) -> Product | None:
        if not sku or not isinstance(sku, str):
            return None
        return self._first(Product.sku == sku.strip(), tenant_id=tenant_id)

    def lock_by_id(self, product_id, tenant_id: uuid.UUID) -> Product | None:
        """
        Row-locking lookup (SELECT ... FOR UPDATE).

        NOTE: SQLite ignores FOR UPDATE; PostgreSQL honors it.
        """
        key = coerce_uuid_or_none(product_id)
        if key is None:
            return None
        stmt = (
            select(Product)
            .where(Product.tenant_id == tenant_id, Product.id == key)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.session.scalars(stmt).first()


class LocationRepository(TenantOwnedRepository):
    model = Location


class CategoryRepository(TenantOwnedRepository):
    model = Category


class DeviceRepository(TenantOwnedRepository):
    model = Device

    def find_active_by_id(self, device_id, tenant_id: uuid.UUID) -> Device | None:
        device = self.find_by_id(device_id, tenant_id)
        if device is None or device.status != "ACTIVE":
            return None
        return device


class TenantRepository:
    """Tenants are the isolation root: looked up unscoped, by exact id or slug."""

    def __init__(self, session: Session):
        self.session = session

    def find_by_id(self, tenant_id) -> Tenant | None:
        key = coerce_uuid_or_none(tenant_id)
        if key is None:
            return None
        return self.session.get(Tenant, key)

    def find_by_slug(self, slug: str) -> Tenant | None:
        if not slug or not isinstance(slug, str):
            return None
        return self.session.scalars(
            select(Tenant).where(Tenant.slug == slug.strip().lower()).limit(1)
        ).first()
