# Overview: Append-only audit trail paired 1:1 with ledger entries.

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import AuditRecord, InventoryTransaction
from ..validation import coerce_uuid_or_none
"""
Audit Trail Invariants (authoritative)

- Exactly one AuditRecord per InventoryTransaction, written in the same DB
  transaction (the caller's unit of work; nothing is committed here).
- Append-only: no updates/deletes (refused by the scoped session at flush).
- Write-only from the ledger's perspective; the read helpers below serve
  reporting and compliance replay.
"""


def append_audit_record(
    session: Session,
    *,
    transaction: InventoryTransaction,
    actor,
    metadata: dict,
) -> AuditRecord:
    record = AuditRecord(
        tenant_id=transaction.tenant_id,
        transaction_id=transaction.id,
        device_id=actor.device_id,
        user_id=actor.user_id,
        action_type=transaction.transaction_type,
        snapshot=metadata,
    )
    session.add(record)
    session.flush()
    return record


def list_audit_records(scope, *, transaction_id=None, limit: int = 200) -> list[AuditRecord]:
    """Tenant-scoped audit records ordered by created_at (oldest first)."""
    stmt = select(AuditRecord).where(AuditRecord.tenant_id == scope.tenant_id)
    if transaction_id is not None:
        key = coerce_uuid_or_none(transaction_id)
        if key is None:
            return []
        stmt = stmt.where(AuditRecord.transaction_id == key)

    stmt = stmt.order_by(AuditRecord.created_at.asc(), AuditRecord.id.asc()).limit(limit)
    return list(scope.execute(stmt).scalars())


def get_audit_record_for_transaction(scope, transaction_id) -> AuditRecord | None:
    records = list_audit_records(scope, transaction_id=transaction_id, limit=1)
    return records[0] if records else None
