# Overview: Tenant-namespaced cache keys invalidated after a ledger commit.

from __future__ import annotations

import uuid

"""
The ledger never talks to a cache. It reports which keys became stale and
the caller invalidates them once the transaction has committed. Every key
is namespaced by tenant so one tenant's invalidation can never touch
another tenant's entries.
"""


def tenant_namespace(tenant_id: uuid.UUID) -> str:
    return f"tenant:{tenant_id}"


def inventory_cache_keys(
    tenant_id: uuid.UUID,
    product_id: uuid.UUID,
    category_id: uuid.UUID | None = None,
) -> list[str]:
    prefix = f"{tenant_namespace(tenant_id)}:inventory"
    keys = [
        f"{prefix}:product:{product_id}*",
        f"{prefix}:items*",
        f"{prefix}:reports*",
    ]
    if category_id is not None:
        keys.append(f"{prefix}:category:{category_id}*")
    return keys
