from __future__ import annotations

import uuid

from sqlalchemy.orm import declared_attr

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

TENANT_TIERS = ("FREE", "BASIC", "PREMIUM", "ENTERPRISE")
DEVICE_STATUSES = ("ACTIVE", "INACTIVE", "REVOKED")


class TenantOwnedMixin:
    """
    Marks a model as owned by exactly one tenant.

    MULTI-TENANT: Every model carrying this mixin gets a non-null tenant_id,
    is covered by a row-level security policy on PostgreSQL, and is filtered
    by the scoped session's loader criteria on every dialect.
    """

    @declared_attr
    def tenant_id(cls):
        return db.Column(
            db.Uuid,
            db.ForeignKey("tenants.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )


class Tenant(db.Model):
    """
    Multi-tenant root: every business using the system is a Tenant.

    WHY: Shared-database multi-tenancy with strict isolation. All products,
    locations, devices and ledger rows belong to exactly one tenant and no
    core query ever joins across tenants.

    The tenants table is the isolation root, so it is NOT tenant-owned and
    carries no row-level security policy.
    """
    __tablename__ = "tenants"

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(64), nullable=False, unique=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    tier = db.Column(db.String(16), nullable=False, default="FREE")

    # Resource limits by tier (enforced by billing, recorded here)
    max_users = db.Column(db.Integer, nullable=False, default=5)
    max_storage_mb = db.Column(db.Integer, nullable=False, default=100)
    max_products = db.Column(db.Integer, nullable=True)

    contact_email = db.Column(db.String(255), nullable=True)
    settings = db.Column(db.JSON, nullable=False, default=dict)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} slug={self.slug!r} active={self.is_active}>"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "slug": self.slug,
            "is_active": self.is_active,
            "tier": self.tier,
            "max_users": self.max_users,
            "max_storage_mb": self.max_storage_mb,
            "max_products": self.max_products,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Device(TenantOwnedMixin, db.Model):
    """
    Scanning device registered to a tenant.

    Registration and token issuance live in the auth collaborator; the ledger
    only checks that a device referenced by an actor is an ACTIVE device of
    the current tenant.
    """
    __tablename__ = "devices"

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    name = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="ACTIVE", index=True)
    last_seen_at = db.Column(db.DateTime, nullable=True)
    registered_by = db.Column(db.Uuid, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Device id={self.id} name={self.name!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "tenant_id": str(self.tenant_id),
            "name": self.name,
            "status": self.status,
            "last_seen_at": to_utc_z(self.last_seen_at),
            "created_at": to_utc_z(self.created_at),
        }
