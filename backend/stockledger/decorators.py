# Overview: Request decorators that establish tenant context for API routes.

from functools import wraps

from flask import g, request

from .services.ledger_service import Actor
from .services.tenant_service import create_tenant_context

TENANT_HEADER = "X-Tenant-ID"
USER_HEADER = "X-User-ID"
DEVICE_HEADER = "X-Device-ID"


def require_tenant_context(f):
    """
    Establish tenant context from headers set by the authenticating gateway.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.tenant_context: TenantContext for the request (scope acquired lazily)
    - g.actor: Actor carrying the optional user and device ids

    SECURITY: Identity is trusted from the gateway. Tenant existence and
    status are still validated here; errors propagate to the LedgerError
    handler (403 missing/inactive, 404 unknown).
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        context = create_tenant_context(request.headers.get(TENANT_HEADER))

        actor = Actor(
            user_id=request.headers.get(USER_HEADER) or None,
            device_id=request.headers.get(DEVICE_HEADER) or None,
        )

        g.tenant_context = context
        g.actor = actor

        return f(*args, **kwargs)

    return decorated_function
