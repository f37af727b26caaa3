# Overview: Atomic conditional quantity mutation; serializes concurrent writers on the row lock.

from __future__ import annotations

import uuid

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..models import Product
from ..time_utils import utcnow


def apply_quantity_delta(
    session: Session,
    *,
    tenant_id: uuid.UUID,
    product_id: uuid.UUID,
    delta: int,
) -> int | None:
    """
    Apply `quantity = quantity + delta` as ONE conditional UPDATE.

    Returns the committed-so-far quantity after the update, or None when the
    guard `quantity + delta >= 0` rejected it (zero affected rows).

    WHY: Never read-then-write. Two concurrent writers on the same product
    serialize on the row lock this UPDATE takes; the loser's guard is
    re-evaluated against the winner's committed value, so no in-process
    lock is needed.
    """
    stmt = (
        update(Product)
        .where(
            Product.id == product_id,
            Product.tenant_id == tenant_id,
            Product.quantity + delta >= 0,
        )
        .values(quantity=Product.quantity + delta, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    result = session.execute(stmt)
    if result.rowcount != 1:
        return None

    # Same transaction, row is locked by us: this read cannot race
    return session.execute(
        select(Product.quantity).where(
            Product.id == product_id,
            Product.tenant_id == tenant_id,
        )
    ).scalar_one()
