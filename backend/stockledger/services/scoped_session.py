# Overview: Tenant-scoped database handle over one pooled connection.

from __future__ import annotations

import re
import uuid
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import event, func, select, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, with_loader_criteria

from ..errors import (
    ImmutableRecordError,
    LedgerError,
    TenantAccessError,
    TenantScopeError,
    TransactionFailure,
)
from ..models import AuditRecord, InventoryTransaction, TenantOwnedMixin
"""
Scoped Database Handle Invariants (authoritative)

- One handle = one pooled connection + one Session bound to it, for one tenant.
- The tenant marker is set lazily, on first use, and always before any data
  query runs. If it cannot be set the handle is released and TenantScopeError
  is raised; a handle never runs unscoped.
- ORM SELECT, UPDATE and DELETE statements through the handle carry a
  tenant_id loader criteria on every dialect. On PostgreSQL the marker also
  drives row-level security, which covers raw SQL.
- release() closes the session, resets the marker and returns the connection
  on EVERY exit path. If the reset fails the physical connection is
  invalidated instead of being returned to the pool carrying a tenant.
- Ledger and audit rows are append-only: updates/deletes are refused at flush
  and for ORM bulk statements alike.
- The underlying connection is never exposed; current_marker() is the only
  diagnostic view of it.
"""

MARKER_INFO_KEY = "stockledger.current_tenant_id"

_SETTING_NAME = re.compile(r"^[a-z_][a-z0-9_]*\.[a-z_][a-z0-9_]*$")

APPEND_ONLY_MODELS = (InventoryTransaction, AuditRecord)


class PostgresTenantMarker:
    """Tenant marker stored in a PostgreSQL session variable read by RLS policies."""

    def __init__(self, setting_name: str):
        if not _SETTING_NAME.match(setting_name):
            raise ValueError(f"invalid tenant session setting name: {setting_name!r}")
        self.setting_name = setting_name

    def apply(self, connection: Connection, tenant_id: uuid.UUID) -> None:
        # is_local=false: the setting must outlive the transactions run by the handle
        connection.execute(select(func.set_config(self.setting_name, str(tenant_id), False)))
        connection.commit()
        connection.info[MARKER_INFO_KEY] = tenant_id

    def reset(self, connection: Connection) -> None:
        connection.execute(text(f"RESET {self.setting_name}"))
        connection.commit()
        connection.info.pop(MARKER_INFO_KEY, None)

    def read(self, connection: Connection) -> uuid.UUID | None:
        began = not connection.in_transaction()
        value = connection.execute(
            select(func.current_setting(self.setting_name, True))
        ).scalar()
        if began:
            # Leave no connection-level transaction for a later Session to join
            connection.commit()
        return uuid.UUID(value) if value else None


class ConnectionInfoTenantMarker:
    """
    Tenant marker for engines without row-level security (SQLite).

    Kept in the pooled connection's info dict, which lives with the physical
    DBAPI connection across checkouts, so it behaves like a session variable.
    """

    def apply(self, connection: Connection, tenant_id: uuid.UUID) -> None:
        connection.info[MARKER_INFO_KEY] = tenant_id

    def reset(self, connection: Connection) -> None:
        connection.info.pop(MARKER_INFO_KEY, None)

    def read(self, connection: Connection) -> uuid.UUID | None:
        return connection.info.get(MARKER_INFO_KEY)


def marker_for_engine(engine: Engine, setting_name: str):
    if engine.dialect.name == "postgresql":
        return PostgresTenantMarker(setting_name)
    return ConnectionInfoTenantMarker()


def current_tenant_marker(connection: Connection) -> uuid.UUID | None:
    """Read the tenant marker currently carried by a connection (diagnostics/tests)."""
    marker = marker_for_engine(connection.engine, current_app.config["TENANT_SESSION_SETTING"])
    return marker.read(connection)


class TenantScopedSession:
    """
    Database handle restricted to one tenant for its entire lifetime.

    Usage:
        with TenantScopedSession(db.engine, tenant.id, marker=marker) as scope:
            scope.execute(select(Product)).scalars().all()

    Prefer services.tenant_service.tenant_scope(), which validates the
    tenant before checking out a connection.
    """

    def __init__(self, engine: Engine, tenant_id: uuid.UUID, *, marker):
        self.tenant_id = tenant_id
        self._marker = marker
        self._connection = engine.connect()
        self._session: Session | None = None
        self._marker_attempted = False
        self._released = False

    def __enter__(self) -> "TenantScopedSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "released" if self._released else "open"
        return f"<TenantScopedSession tenant_id={self.tenant_id} {state}>"

    @property
    def is_released(self) -> bool:
        return self._released

    def current_marker(self) -> uuid.UUID | None:
        """Tenant marker the handle's connection carries right now (diagnostics/tests)."""
        self._ensure_open()
        return self._marker.read(self._connection)

    @property
    def session(self) -> Session:
        """The tenant-restricted Session; sets the tenant marker on first access."""
        self._ensure_open()
        if self._session is None:
            self._apply_marker()
            self._session = self._build_session()
        return self._session

    def execute(self, statement, params=None):
        """Run a statement with the tenant marker active."""
        return self.session.execute(statement, params)

    @contextmanager
    def atomic(self):
        """
        One atomic unit of work on this handle.

        Commits on success; rolls back on ANY exception, including
        cancellation (BaseException). A read-only transaction left open by
        earlier reads is ended first; pending writes outside a unit of work
        are refused rather than silently committed.
        """
        session = self.session
        if session.new or session.deleted or any(session.is_modified(o) for o in session.dirty):
            raise TransactionFailure("Scoped session has pending writes outside a unit of work")
        if session.in_transaction():
            session.commit()
        # expire_on_commit is off: drop snapshots left over from earlier work
        session.expire_all()

        try:
            with session.begin():
                yield session
        except LedgerError:
            raise
        except SQLAlchemyError as exc:
            current_app.logger.exception(
                "Inventory transaction failed for tenant %s", self.tenant_id
            )
            raise TransactionFailure("Inventory transaction failed") from exc

    def release(self) -> None:
        """Close the session, reset the tenant marker and return the connection. Idempotent."""
        if self._released:
            return
        self._released = True

        connection = self._connection
        try:
            if self._session is not None:
                self._session.close()
        finally:
            try:
                if self._marker_attempted:
                    self._reset_marker(connection)
            finally:
                connection.close()

    def _ensure_open(self) -> None:
        if self._released:
            raise TenantScopeError("Tenant scope has already been released")

    def _apply_marker(self) -> None:
        self._marker_attempted = True
        try:
            self._marker.apply(self._connection, self.tenant_id)
        except Exception as exc:
            current_app.logger.error(
                "Failed to set tenant marker for tenant %s; aborting scope", self.tenant_id
            )
            self.release()
            raise TenantScopeError("Could not establish tenant scope") from exc
        except BaseException:
            self.release()
            raise

    def _reset_marker(self, connection: Connection) -> None:
        try:
            if connection.in_transaction():
                connection.rollback()
            self._marker.reset(connection)
        except Exception:
            # Never hand a connection still carrying a tenant back to the pool
            current_app.logger.exception(
                "Failed to reset tenant marker for tenant %s; invalidating connection",
                self.tenant_id,
            )
            connection.invalidate()

    def _build_session(self) -> Session:
        session = Session(bind=self._connection, expire_on_commit=False)
        tenant_id = self.tenant_id

        @event.listens_for(session, "do_orm_execute")
        def _restrict_to_tenant(state):
            is_dml = state.is_update or state.is_delete
            if is_dml:
                mapper = state.bind_mapper
                if mapper is not None and issubclass(mapper.class_, APPEND_ONLY_MODELS):
                    action = "modified" if state.is_update else "deleted"
                    raise ImmutableRecordError(f"{mapper.class_.__name__} rows cannot be {action}")
            elif not state.is_select or state.is_column_load or state.is_relationship_load:
                return

            state.statement = state.statement.options(
                with_loader_criteria(
                    TenantOwnedMixin,
                    lambda cls: cls.tenant_id == tenant_id,
                    include_aliases=True,
                )
            )

        @event.listens_for(session, "before_flush")
        def _guard_writes(sess, flush_context, instances):
            for obj in sess.new:
                if not isinstance(obj, TenantOwnedMixin):
                    continue
                if obj.tenant_id is None:
                    obj.tenant_id = tenant_id
                elif obj.tenant_id != tenant_id:
                    raise TenantAccessError("Cannot write rows owned by another tenant")

            for obj in sess.deleted:
                if isinstance(obj, APPEND_ONLY_MODELS):
                    raise ImmutableRecordError(f"{type(obj).__name__} rows cannot be deleted")

            for obj in sess.dirty:
                if isinstance(obj, APPEND_ONLY_MODELS) and sess.is_modified(obj):
                    raise ImmutableRecordError(f"{type(obj).__name__} rows cannot be modified")

        return session
