"""
Multi-Tenant Service: Tenant Resolution and Scoped Handles

WHY: Centralize tenant validation and the acquisition of tenant-scoped
database handles. Every ledger call runs on a handle bound to exactly one
tenant, and cross-tenant access must be denied at the data-access layer,
not just in application code.

SECURITY INVARIANTS:
1. A handle is only produced for an existing, active tenant
2. Missing tenant -> ForbiddenError; malformed or unknown -> NotFoundError;
   inactive -> ForbiddenError. Never a silent "no restriction" default.
3. Acquire is always paired with a guaranteed release (tenant_scope / teardown)
4. Denials are logged as security warnings

USAGE:
    from stockledger.services.tenant_service import tenant_scope

    with tenant_scope(tenant_id) as scope:
        ledger_service.receive_stock(scope, product_id=..., ...)
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager

from flask import current_app, g, has_request_context, request
from sqlalchemy.orm import Session

from ..errors import NotFoundError, TenantAccessError
from ..extensions import db
from ..models import Tenant
from ..validation import coerce_uuid_or_none
from .repositories import TenantRepository
from .scoped_session import TenantScopedSession, marker_for_engine


def parse_tenant_id(raw_tenant_id) -> uuid.UUID:
    if raw_tenant_id is None or (isinstance(raw_tenant_id, str) and not raw_tenant_id.strip()):
        _log_tenant_access_denied("Tenant context missing")
        raise TenantAccessError("Tenant context not established")

    tenant_id = coerce_uuid_or_none(raw_tenant_id)
    if tenant_id is None:
        _log_tenant_access_denied("Malformed tenant id")
        raise NotFoundError("Tenant not found")
    return tenant_id


def resolve_active_tenant(raw_tenant_id) -> Tenant:
    """
    Validate that a tenant exists and is active.

    Looked up on a short-lived session so no pooled connection is held
    between resolution and scope acquisition.
    """
    tenant_id = parse_tenant_id(raw_tenant_id)

    with Session(db.engine, expire_on_commit=False) as session:
        tenant = TenantRepository(session).find_by_id(tenant_id)

    if tenant is None:
        _log_tenant_access_denied("Unknown tenant", tenant_id=tenant_id)
        raise NotFoundError("Tenant not found")

    if not tenant.is_active:
        _log_tenant_access_denied("Inactive tenant", tenant_id=tenant_id)
        raise TenantAccessError("Tenant is not active")

    return tenant


def acquire_tenant_scope(raw_tenant_id) -> TenantScopedSession:
    """
    Check out a pooled connection restricted to one tenant.

    The caller owns the handle and MUST release it; prefer tenant_scope().
    """
    tenant = resolve_active_tenant(raw_tenant_id)
    marker = marker_for_engine(db.engine, current_app.config["TENANT_SESSION_SETTING"])
    return TenantScopedSession(db.engine, tenant.id, marker=marker)


@contextmanager
def tenant_scope(raw_tenant_id):
    """Acquire a tenant-scoped handle and release it on every exit path."""
    scope = acquire_tenant_scope(raw_tenant_id)
    try:
        yield scope
    finally:
        scope.release()


class TenantContext:
    """
    Per-request tenant context.

    Holds the resolved tenant and lazily acquires ONE scoped handle for the
    request. Released at app-context teardown.
    """

    def __init__(self, tenant: Tenant):
        self.tenant = tenant
        self._scope: TenantScopedSession | None = None

    @property
    def tenant_id(self) -> uuid.UUID:
        return self.tenant.id

    def get_scope(self) -> TenantScopedSession:
        if self._scope is None or self._scope.is_released:
            marker = marker_for_engine(db.engine, current_app.config["TENANT_SESSION_SETTING"])
            self._scope = TenantScopedSession(db.engine, self.tenant.id, marker=marker)
        return self._scope

    def release(self) -> None:
        if self._scope is not None:
            scope, self._scope = self._scope, None
            scope.release()


def create_tenant_context(raw_tenant_id) -> TenantContext:
    return TenantContext(resolve_active_tenant(raw_tenant_id))


def get_request_tenant_context() -> TenantContext:
    """
    Get the current request's TenantContext from Flask g.

    SECURITY: Raises TenantAccessError if no context was established.
    """
    context = getattr(g, "tenant_context", None)
    if context is None:
        raise TenantAccessError("Tenant context not established")
    return context


def release_request_tenant_context(exc=None) -> None:
    """App-context teardown hook: release the request's scoped handle, if any."""
    context = g.pop("tenant_context", None)
    if context is not None:
        context.release()


def _log_tenant_access_denied(reason: str, tenant_id: uuid.UUID | None = None) -> None:
    """
    Log a denied tenant access as a security warning.

    These events should be monitored and alerted on.
    """
    path = request.path if has_request_context() else None
    current_app.logger.warning(
        "TENANT_ACCESS_DENIED reason=%s tenant_id=%s path=%s",
        reason,
        tenant_id,
        path,
    )
