# Overview: Error taxonomy shared by the tenant scope, repositories and ledger.

"""
Ledger error taxonomy.

Every error carries the HTTP status the facade maps it to. NotFound and
InvariantViolation are client-correctable; TransactionFailure is a generic
server error with no partial effect.
"""


class LedgerError(Exception):
    """Base class for ledger-layer errors."""

    status_code = 500


class ValidationError(LedgerError, ValueError):
    """400-level input problem."""

    status_code = 400


class ForbiddenError(LedgerError):
    """Tenant inactive, tenant context missing, or actor not allowed."""

    status_code = 403


class TenantAccessError(ForbiddenError):
    """Raised when a tenant scope cannot be established or is crossed."""


class NotFoundError(LedgerError):
    """Entity missing or outside the current tenant scope (indistinguishable)."""

    status_code = 404


class InvariantViolation(LedgerError):
    """Operation would drive a product quantity negative."""

    status_code = 409


class TransactionFailure(LedgerError):
    """Unexpected database error inside the atomic unit of work."""

    status_code = 500


class TenantScopeError(TransactionFailure):
    """The tenant marker could not be set or reset on a pooled connection."""


class ImmutableRecordError(TransactionFailure):
    """Attempted update or delete of an append-only ledger/audit row."""
