"""
Sync Service - offline client reconciliation

WHY: Registers keep selling while offline and later reconcile with this
server of record. Pull hands out every row changed since the client's
cursor; push applies a batch of local changes with last-write-wins
conflict resolution and idempotent retries.

Push failure model:
- The whole push is one database transaction: items, then customers, then
  transactions (lines reference item ids), committed once at the end.
- Each record runs inside its own SAVEPOINT. A record-level failure
  (business conflict, constraint violation, bad data) rolls back only that
  savepoint, so a transaction's insert, voucher and stock decrements vanish
  together, and the record is reported in "conflicts". The batch goes on.
- Session-level failures (lost connection, lock timeout, deadlock) abort
  the whole push. Lock errors are retried from scratch first; retries are
  safe because replays resolve through idempotency keys.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import Customer, Item, Transaction, TransactionLine
from ..validation import ENTITY_TYPES, ConflictError, parse_since, validate_push_payload
from possync.time_utils import to_utc_z, utcnow
from . import conflict_service, idempotency_service, inventory_service, sync_metadata_service
from .concurrency import begin_write_transaction, is_session_fatal, run_with_retry
from .repository import get_repository
from .voucher_service import allocate_voucher_number, is_voucher_taken

SYNCED = "synced"
CONFLICT = "conflict"

# Cursor overlap: a row stamped in the same millisecond as the cursor is
# delivered again by the next pull instead of being skipped
CURSOR_OVERLAP = timedelta(milliseconds=1)

# Full-state overwrite: fields a client omits fall back to these
ITEM_DEFAULTS = {
    "barcode": None,
    "sku": None,
    "price": 0,
    "unit": "piece",
    "inventory_qty": 0,
    "category": None,
    "recommended": False,
    "image_path": None,
}

CUSTOMER_DEFAULTS = {
    "phone": None,
    "email": None,
    "address": None,
}

TRANSACTION_DEFAULTS = {
    "customer_id": None,
    "subtotal": 0,
    "tax": 0,
    "discount": 0,
    "other_charges": 0,
    "grand_total": 0,
    "item_count": 0,
    "unit_count": 0,
    "payment_type": "cash",
    "status": "completed",
    "receipt_path": None,
}


@dataclass
class SyncOutcome:
    """Result of one pushed record; business conflicts are values, not exceptions."""
    entity_type: str
    client_id: str
    status: str
    cloud_id: str | None = None
    action: str | None = None
    voucher_number: str | None = None
    reason: str | None = None
    error: str | None = None
    server_updated_at: datetime | None = None
    client_updated_at: datetime | None = None

    def to_dict(self) -> dict:
        if self.status == SYNCED:
            data = {"id": self.client_id, "cloud_id": self.cloud_id}
            if self.action:
                data["action"] = self.action
            if self.entity_type == "transactions":
                data["voucher_number"] = self.voucher_number
            return data

        data = {"id": self.client_id}
        if self.reason:
            data["reason"] = self.reason
        if self.error:
            data["error"] = self.error
        if self.server_updated_at is not None:
            data["server_updated_at"] = to_utc_z(self.server_updated_at)
        if self.client_updated_at is not None:
            data["client_updated_at"] = to_utc_z(self.client_updated_at)
        return data


# =============================================================================
# Pull
# =============================================================================

def pull_changes(user_id: str, since=None) -> dict:
    """
    Every row of the user with updated_at > since, per entity type, oldest first.

    The scan runs inside a write transaction, so it waits for in-flight
    pushes to commit (SQLite BEGIN IMMEDIATE) and any push that starts later
    stamps its rows at or after server_timestamp. The returned cursor is
    server_timestamp minus CURSOR_OVERLAP: a row may be delivered twice,
    never skipped.
    """
    since_dt = parse_since(since)

    def _op() -> dict:
        begin_write_transaction()
        try:
            server_timestamp = utcnow()
            result = {
                entity_type: [row.to_dict() for row in get_repository(entity_type).scan_since(user_id, since_dt)]
                for entity_type in ENTITY_TYPES
            }
        finally:
            # Read-only: release the write lock
            db.session.rollback()
        result["server_timestamp"] = to_utc_z(server_timestamp - CURSOR_OVERLAP)
        return result

    return run_with_retry(_op, attempts=current_app.config.get("SYNC_RETRY_ATTEMPTS", 3))


# =============================================================================
# Push
# =============================================================================

def _assign_fields(obj, record: dict, defaults: dict) -> None:
    for field, default in defaults.items():
        value = record.get(field)
        setattr(obj, field, default if value is None else value)


def _require_name(record: dict) -> str:
    name = record.get("name")
    if not name:
        raise ConflictError("name is required")
    return name


def _build_lines(raw_lines: list[dict]) -> list[TransactionLine]:
    lines = []
    for position, raw in enumerate(raw_lines):
        quantity = raw.get("quantity") or 0
        unit_price = raw.get("unit_price") or 0
        line_total = raw.get("line_total")
        lines.append(TransactionLine(
            position=position,
            item_id=raw.get("item_id"),
            item_name=raw.get("item_name"),
            quantity=quantity,
            unit=raw.get("unit"),
            unit_price=unit_price,
            line_total=quantity * unit_price if line_total is None else line_total,
        ))
    return lines


def _create_item(user_id: str, record: dict, resolution, now: datetime) -> Item:
    item = Item(
        user_id=user_id,
        id=record["id"],
        name=_require_name(record),
        idempotency_key=record.get("idempotency_key"),
        created_at=record.get("created_at") or now,
        updated_at=resolution.client_updated_at,
    )
    _assign_fields(item, record, ITEM_DEFAULTS)
    return get_repository("items").add(item)


def _update_item(item: Item, record: dict, resolution) -> Item:
    item.name = _require_name(record)
    _assign_fields(item, record, ITEM_DEFAULTS)
    item.updated_at = resolution.client_updated_at
    return get_repository("items").save(item)


def _create_customer(user_id: str, record: dict, resolution, now: datetime) -> Customer:
    customer = Customer(
        user_id=user_id,
        id=record["id"],
        name=_require_name(record),
        idempotency_key=record.get("idempotency_key"),
        created_at=record.get("created_at") or now,
        updated_at=resolution.client_updated_at,
    )
    _assign_fields(customer, record, CUSTOMER_DEFAULTS)
    return get_repository("customers").add(customer)


def _update_customer(customer: Customer, record: dict, resolution) -> Customer:
    customer.name = _require_name(record)
    _assign_fields(customer, record, CUSTOMER_DEFAULTS)
    customer.updated_at = resolution.client_updated_at
    return get_repository("customers").save(customer)


def _create_transaction(user_id: str, record: dict, resolution, now: datetime) -> Transaction:
    """
    Insert a transaction with its voucher number and stock decrements.

    All three happen inside the caller's savepoint: if any fails, none stick.
    """
    tx = Transaction(
        user_id=user_id,
        id=record["id"],
        date=record.get("date") or now,
        idempotency_key=record.get("idempotency_key"),
        created_at=record.get("created_at") or now,
        updated_at=resolution.client_updated_at,
    )
    _assign_fields(tx, record, TRANSACTION_DEFAULTS)

    client_voucher = record.get("voucher_number")
    if not client_voucher or record.get("provisional_voucher"):
        tx.voucher_number = allocate_voucher_number(user_id, on_date=tx.date)
    else:
        if is_voucher_taken(user_id, client_voucher):
            raise ConflictError("Voucher number already exists")
        tx.voucher_number = client_voucher
    tx.provisional_voucher = None

    tx.lines = _build_lines(record.get("lines") or [])
    get_repository("transactions").add(tx)

    inventory_service.apply_transaction_lines(tx)
    return tx


def _update_transaction(tx: Transaction, record: dict, resolution) -> Transaction:
    """Overwrite a stored transaction. Stock is never moved on update."""
    voucher_number = record.get("voucher_number") or tx.voucher_number
    if voucher_number != tx.voucher_number and is_voucher_taken(tx.user_id, voucher_number):
        raise ConflictError("Voucher number already exists")

    _assign_fields(tx, record, TRANSACTION_DEFAULTS)
    tx.voucher_number = voucher_number
    tx.provisional_voucher = record.get("provisional_voucher")
    tx.date = record.get("date") or tx.date
    tx.lines = _build_lines(record.get("lines") or [])
    tx.updated_at = resolution.client_updated_at
    return get_repository("transactions").save(tx)


CREATORS = {
    "items": _create_item,
    "customers": _create_customer,
    "transactions": _create_transaction,
}

UPDATERS = {
    "items": _update_item,
    "customers": _update_customer,
    "transactions": _update_transaction,
}


def _synced(entity_type: str, record: dict, row, action: str | None) -> SyncOutcome:
    return SyncOutcome(
        entity_type=entity_type,
        client_id=record["id"],
        status=SYNCED,
        cloud_id=row.id if row is not None else record["id"],
        action=action,
        voucher_number=getattr(row, "voucher_number", None),
    )


def _apply_record(user_id: str, entity_type: str, record: dict) -> SyncOutcome:
    repo = get_repository(entity_type)
    now = utcnow()
    idempotency_key = record.get("idempotency_key")

    if record.get("deleted_at") is not None:
        # Deletes are never swallowed as replays
        existing = repo.get(user_id, record["id"], lock=True)
        if existing is None and idempotency_key:
            existing = repo.get_by_idempotency_key(user_id, idempotency_key)
    else:
        replay_id = idempotency_service.resolve(user_id, entity_type, idempotency_key)
        if replay_id is not None:
            return _synced(entity_type, record, repo.get(user_id, replay_id), None)
        existing = repo.get(user_id, record["id"], lock=True)

    resolution = conflict_service.resolve_change(existing, record, now=now)

    if resolution.action == conflict_service.NOOP:
        return _synced(entity_type, record, None, None)

    if resolution.action == conflict_service.CONFLICT:
        return SyncOutcome(
            entity_type=entity_type,
            client_id=record["id"],
            status=CONFLICT,
            reason=resolution.reason,
            server_updated_at=resolution.server_updated_at,
            client_updated_at=resolution.client_updated_at,
        )

    if resolution.action == conflict_service.DELETE:
        existing.deleted_at = record["deleted_at"]
        existing.updated_at = now
        repo.save(existing)
        return _synced(entity_type, record, existing, "deleted")

    if resolution.action == conflict_service.UPDATE:
        row = UPDATERS[entity_type](existing, record, resolution)
        return _synced(entity_type, record, row, "updated")

    row = CREATORS[entity_type](user_id, record, resolution, now)
    return _synced(entity_type, record, row, "created")


def _process_record(user_id: str, entity_type: str, record: dict) -> SyncOutcome:
    try:
        with db.session.begin_nested():
            return _apply_record(user_id, entity_type, record)
    except Exception as exc:
        if is_session_fatal(exc):
            raise
        if isinstance(exc, IntegrityError):
            error = "Conflicts with an existing record"
        else:
            error = str(exc) or exc.__class__.__name__
        current_app.logger.warning(
            "Sync %s record %s for user %s failed: %s", entity_type, record["id"], user_id, error
        )
        return SyncOutcome(entity_type=entity_type, client_id=record["id"], status=CONFLICT, error=error)


def push_changes(user_id: str, payload) -> dict:
    """
    Apply a batch of client changes in one atomic unit.

    Raises ValidationError before touching storage when the batch is
    malformed. Session-level database errors propagate after rollback.
    """
    groups = validate_push_payload(
        payload, max_batch_size=current_app.config.get("SYNC_MAX_BATCH_SIZE", 500)
    )

    def _op() -> dict:
        begin_write_transaction()
        results = {entity_type: {"synced": [], "conflicts": []} for entity_type in ENTITY_TYPES}

        for entity_type in ENTITY_TYPES:
            for record in groups.get(entity_type, []):
                outcome = _process_record(user_id, entity_type, record)
                bucket = "synced" if outcome.status == SYNCED else "conflicts"
                results[entity_type][bucket].append(outcome.to_dict())

        db.session.commit()
        return results

    try:
        results = run_with_retry(_op, attempts=current_app.config.get("SYNC_RETRY_ATTEMPTS", 3))
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Push for user %s committed: %s",
        user_id,
        ", ".join(
            f"{et} {len(results[et]['synced'])} synced/{len(results[et]['conflicts'])} conflicts"
            for et in groups
        ) or "empty",
    )

    try:
        sync_metadata_service.record_push(user_id, {et: results[et] for et in groups})
    except SQLAlchemyError:
        current_app.logger.exception("Failed to record sync metadata for user %s", user_id)

    return {**results, "server_timestamp": to_utc_z(utcnow())}
