from __future__ import annotations

import uuid

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .tenancy import TenantOwnedMixin


class AuditRecord(TenantOwnedMixin, db.Model):
    """
    Forensic record paired 1:1 with an InventoryTransaction.

    Written in the same DB transaction as the ledger entry it describes and
    never read by the ledger itself. tenant_id is copied from the ledger
    entry so row-level security applies to this table directly.

    The "metadata" column is mapped as `snapshot` because declarative models
    reserve the `metadata` attribute name.
    """
    __tablename__ = "audit_records"
    __table_args__ = (
        db.Index("ix_audit_tenant_created", "tenant_id", "created_at"),
    )

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    transaction_id = db.Column(
        db.Uuid,
        db.ForeignKey("inventory_transactions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    device_id = db.Column(db.Uuid, db.ForeignKey("devices.id"), nullable=True)
    user_id = db.Column(db.Uuid, nullable=True)
    action_type = db.Column(db.String(32), nullable=False)
    snapshot = db.Column("metadata", db.JSON, nullable=False, default=dict)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    transaction = db.relationship(
        "InventoryTransaction",
        backref=db.backref("audit_record", uselist=False, lazy=True),
    )

    def __repr__(self) -> str:
        return f"<AuditRecord id={self.id} transaction_id={self.transaction_id} action={self.action_type}>"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "tenant_id": str(self.tenant_id),
            "transaction_id": str(self.transaction_id),
            "device_id": str(self.device_id) if self.device_id else None,
            "user_id": str(self.user_id) if self.user_id else None,
            "action_type": self.action_type,
            "metadata": self.snapshot,
            "created_at": to_utc_z(self.created_at),
        }
