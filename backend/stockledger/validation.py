from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from .errors import ValidationError
from .time_utils import parse_iso_datetime

# Single-movement ceiling; keeps signed quantities well inside a 32-bit column
MAX_MOVEMENT_QUANTITY = 1_000_000_000
MAX_NOTES_LENGTH = 2000


def coerce_int(value: Any, field: str) -> int:
    """Strict integer coercion: rejects bools, floats, decimals and scientific notation."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def coerce_quantity(value: Any, field: str = "quantity", *, allow_negative: bool = False) -> int:
    qty = coerce_int(value, field)
    if abs(qty) > MAX_MOVEMENT_QUANTITY:
        raise ValidationError(f"{field} cannot exceed {MAX_MOVEMENT_QUANTITY:,}")
    if allow_negative:
        if qty == 0:
            raise ValidationError(f"{field} must be non-zero")
    elif qty <= 0:
        raise ValidationError(f"{field} must be > 0")
    return qty


def coerce_uuid(value: Any, field: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    if isinstance(value, str):
        try:
            return uuid.UUID(value.strip())
        except ValueError:
            pass
    raise ValidationError(f"{field} must be a UUID")


def coerce_uuid_or_none(value: Any) -> uuid.UUID | None:
    """
    Lenient variant for lookups: malformed ids resolve to None.

    SECURITY: Repositories use this so a malformed id and a foreign id
    produce the same "not found" outcome.
    """
    if value is None:
        return None
    try:
        return coerce_uuid(value, "id")
    except ValidationError:
        return None


def coerce_text(value: Any, field: str, max_length: int = MAX_NOTES_LENGTH) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    text = value.strip()
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text or None


def coerce_datetime(value: Any, field: str) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return parse_iso_datetime(value)
        except ValueError:
            pass
    raise ValidationError(f"{field} must be an ISO-8601 datetime")


@dataclass(frozen=True)
class PayloadPolicy:
    """
    Central policy layer for request payloads:
    - fields: allowlist of accepted keys mapped to their coercer (security boundary)
    - required: keys that must be present and non-null
    """
    fields: dict[str, Callable[[Any, str], Any]]
    required: frozenset[str] = frozenset()


def validate_payload(payload: Any, policy: PayloadPolicy) -> dict:
    """
    Validates + normalizes incoming JSON against a PayloadPolicy.
    Returns a cleaned dict with only allowed fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    missing = sorted(f for f in policy.required if payload.get(f) is None)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    for key in payload:
        if key not in policy.fields:
            raise ValidationError(f"Field not allowed: {key}")

    cleaned: dict = {}
    for key, raw in payload.items():
        cleaned[key] = None if raw is None else policy.fields[key](raw, key)
    return cleaned
