from __future__ import annotations
from datetime import datetime
import math
from possync.time_utils import EPOCH, from_epoch_millis, parse_iso_datetime

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta


ENTITY_TYPES = ("items", "customers", "transactions")

MAX_ID_LENGTH = 64


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., voucher number already taken)."""


class NotFoundError(LookupError):
    """404-level: the record does not exist or belongs to another user."""


@dataclass(frozen=True)
class RecordPolicy:
    """
    What a sync client may write for one entity type.

    - writable_fields: columns copied from the pushed record (security boundary)
    - aliases: alternate client field names mapped onto a writable field;
      the canonical name wins when both are present
    Unknown fields are dropped: offline clients push their whole local row,
    including local-only bookkeeping columns.
    """
    writable_fields: frozenset[str]
    aliases: dict[str, str] = field(default_factory=dict)


ITEM_POLICY = RecordPolicy(
    writable_fields=frozenset({
        "name", "barcode", "sku", "price", "unit", "inventory_qty", "category",
        "recommended", "image_path", "idempotency_key",
        "created_at", "updated_at", "deleted_at",
    }),
    aliases={"image_url": "image_path"},
)

CUSTOMER_POLICY = RecordPolicy(
    writable_fields=frozenset({
        "name", "phone", "email", "address", "idempotency_key",
        "created_at", "updated_at", "deleted_at",
    }),
)

TRANSACTION_POLICY = RecordPolicy(
    writable_fields=frozenset({
        "customer_id", "voucher_number", "provisional_voucher", "date",
        "subtotal", "tax", "discount", "other_charges", "grand_total",
        "item_count", "unit_count", "payment_type", "status", "receipt_path",
        "idempotency_key", "created_at", "updated_at", "deleted_at",
    }),
    aliases={"receipt_file_path": "receipt_path"},
)

LINE_POLICY = RecordPolicy(
    writable_fields=frozenset({"item_id", "item_name", "quantity", "unit", "unit_price", "line_total"}),
    aliases={"price": "unit_price", "total": "line_total"},
)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_number(key: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        try:
            number = float(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be a number")
    else:
        raise ValidationError(f"{key} must be a number")
    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{key} must be a finite number")
    return number


def _coerce_datetime(key: str, value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    # JavaScript clients may send Date values as epoch milliseconds
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return from_epoch_millis(value)
        except (OverflowError, OSError, ValueError):
            raise ValidationError(f"{key} is out of range")
    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"{key} must be an ISO-8601 datetime")
        if dt is None:
            raise ValidationError(f"{key} must be an ISO-8601 datetime")
        return dt
    raise ValidationError(f"{key} must be a datetime")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - reject fractional values and booleans
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        number = _coerce_number(col.key, value)
        if not number.is_integer():
            raise ValidationError(f"{col.key} must be an integer")
        return int(number)

    # Decimal amounts and quantities
    if isinstance(coltype, Numeric):
        return _coerce_number(col.key, value)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        # fallback: truthiness (clients backed by SQLite send 0/1)
        return bool(value)

    # Datetimes (ISO-8601 strings or epoch millis; normalized to UTC)
    if isinstance(coltype, DateTime):
        return _coerce_datetime(col.key, value)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be a string")
        return str(value).strip()

    # Default: leave as-is
    return value


def normalize_fields(*, model: DeclarativeMeta, raw: dict, policy: RecordPolicy) -> dict:
    """
    Validates + normalizes one pushed record against:
    - a policy allowlist (writable_fields) and its aliases
    - SQLAlchemy column metadata (type, String length)
    Returns a dict holding only the writable fields the client supplied.
    Blank strings in nullable columns become None.
    """
    merged: dict = {}
    for alias, target in policy.aliases.items():
        if raw.get(alias) is not None:
            merged[target] = raw[alias]
    for key, value in raw.items():
        if key in policy.writable_fields and (value is not None or key not in merged):
            merged[key] = value

    cols = _columns_by_key(model)
    patch: dict = {}

    for k, raw_value in merged.items():
        col = cols[k]
        val = _coerce_value(col, raw_value)

        if isinstance(val, str) and val == "" and col.nullable:
            val = None

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _record_id(raw: dict) -> str:
    value = raw.get("id")
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ValidationError("id is required")
    record_id = str(value).strip()
    if not record_id:
        raise ValidationError("id is required")
    if len(record_id) > MAX_ID_LENGTH:
        raise ValidationError(f"id exceeds max length {MAX_ID_LENGTH}")
    return record_id


def _normalize_lines(raw_lines: Any) -> list[dict]:
    from .models import TransactionLine

    if raw_lines is None:
        return []
    if not isinstance(raw_lines, list):
        raise ValidationError("lines must be a list")

    lines = []
    for pos, raw_line in enumerate(raw_lines):
        if not isinstance(raw_line, dict):
            raise ValidationError(f"lines[{pos}] must be an object")
        try:
            lines.append(normalize_fields(model=TransactionLine, raw=raw_line, policy=LINE_POLICY))
        except ValidationError as exc:
            raise ValidationError(f"lines[{pos}]: {exc}")
    return lines


def normalize_record(entity_type: str, raw: Any) -> dict:
    """Normalize one pushed record of the given entity type."""
    from .models import Customer, Item, Transaction

    if not isinstance(raw, dict):
        raise ValidationError("record must be an object")

    if entity_type == "items":
        record = normalize_fields(model=Item, raw=raw, policy=ITEM_POLICY)
    elif entity_type == "customers":
        record = normalize_fields(model=Customer, raw=raw, policy=CUSTOMER_POLICY)
    elif entity_type == "transactions":
        record = normalize_fields(model=Transaction, raw=raw, policy=TRANSACTION_POLICY)
        raw_lines = raw.get("lines") if raw.get("lines") is not None else raw.get("line_items")
        record["lines"] = _normalize_lines(raw_lines)
    else:
        raise ValidationError(f"Unknown entity type: {entity_type}")

    record["id"] = _record_id(raw)
    return record


def validate_push_payload(payload: Any, *, max_batch_size: int) -> dict[str, list[dict]]:
    """
    Validate a whole push request before any storage work.

    Returns {entity_type: [normalized records]} for every group present in
    the request. Any problem rejects the entire batch.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    groups: dict[str, list[dict]] = {}
    for entity_type in ENTITY_TYPES:
        raw_group = payload.get(entity_type)
        if raw_group is None:
            continue
        if not isinstance(raw_group, list):
            raise ValidationError(f"{entity_type} must be a list")
        if len(raw_group) > max_batch_size:
            raise ValidationError(f"{entity_type} exceeds max batch size {max_batch_size}")

        records = []
        for index, raw in enumerate(raw_group):
            try:
                records.append(normalize_record(entity_type, raw))
            except ValidationError as exc:
                raise ValidationError(f"{entity_type}[{index}]: {exc}")
        groups[entity_type] = records

    return groups


def parse_since(value: Any) -> datetime:
    """
    Parse a pull cursor.

    - None, "", 0 -> epoch zero (full pull)
    - number -> epoch milliseconds
    - string -> ISO-8601
    """
    if isinstance(value, bool):
        raise ValidationError("since must be an ISO-8601 timestamp")
    if value is None or value == "" or value == 0:
        return EPOCH
    if isinstance(value, (int, float)):
        return _coerce_datetime("since", value)
    if isinstance(value, str):
        return _coerce_datetime("since", value)
    raise ValidationError("since must be an ISO-8601 timestamp")


def require_fields(payload: Any, names: list[str]) -> dict:
    """Single-record endpoints: payload must be an object carrying every name."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    missing = [n for n in names if payload.get(n) in (None, "")]
    if missing:
        raise ValidationError(f"{', '.join(missing)} are required" if len(missing) > 1 else f"{missing[0]} is required")
    return payload
