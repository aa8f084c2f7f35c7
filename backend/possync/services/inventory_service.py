# Overview: Service-layer operations for inventory; stock decrements implied by completed transactions.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import Item, Transaction
from possync.time_utils import utcnow

"""
Inventory invariants

- Item.inventory_qty is a stored running quantity, decremented in place.
- Only newly created transactions with status 'completed' move stock;
  updates and idempotent replays never do.
- Each decrement stamps Item.updated_at so incremental pulls deliver the
  new quantity.
- The decrement runs in the same database transaction as the transaction
  insert and its voucher allocation.
- There is no floor: inventory may go negative (sold before received).
- Lines without item_id (free-text lines) and lines pointing at unknown or
  deleted items are skipped.
"""

COMPLETED = "completed"


def apply_transaction_lines(tx: Transaction) -> int:
    """
    Decrement stock for every line of a completed transaction.

    Returns the number of item rows adjusted.
    """
    if tx.status != COMPLETED:
        return 0

    now = utcnow()
    adjusted = 0
    for line in tx.lines:
        if not line.item_id:
            continue

        stmt = (
            update(Item)
            .where(
                Item.user_id == tx.user_id,
                Item.id == line.item_id,
                Item.deleted_at.is_(None),
            )
            .values(inventory_qty=Item.inventory_qty - (line.quantity or 0), updated_at=now)
        )
        result = db.session.execute(stmt)
        adjusted += result.rowcount or 0

    return adjusted
