# Overview: Service-layer operations for sync bookkeeping; per-user, per-entity push counters.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import SyncMetadata
from possync.time_utils import utcnow
from .concurrency import begin_write_transaction


def _upsert(user_id: str, entity_type: str, now: datetime, had_conflicts: bool) -> None:
    values = {
        "last_sync_at": now,
        "sync_count": SyncMetadata.sync_count + 1,
        "updated_at": now,
    }
    if had_conflicts:
        values["last_conflict_at"] = now

    stmt = (
        update(SyncMetadata)
        .where(SyncMetadata.user_id == user_id, SyncMetadata.entity_type == entity_type)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if db.session.execute(stmt).rowcount:
        return

    try:
        with db.session.begin_nested():
            db.session.add(SyncMetadata(
                user_id=user_id,
                entity_type=entity_type,
                last_sync_at=now,
                sync_count=1,
                last_conflict_at=now if had_conflicts else None,
            ))
            db.session.flush()
    except IntegrityError:
        # Concurrent push inserted the row first
        db.session.execute(stmt)


def record_push(user_id: str, outcomes: dict[str, dict]) -> None:
    """
    Record a committed push for every entity group present in it.

    outcomes maps entity type -> {"synced": [...], "conflicts": [...]}.
    Runs in its own transaction after the push commit.
    """
    if not outcomes:
        return

    now = utcnow()
    begin_write_transaction()
    try:
        for entity_type, result in outcomes.items():
            _upsert(user_id, entity_type, now, bool(result.get("conflicts")))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def list_for_user(user_id: str) -> list[SyncMetadata]:
    return (
        db.session.query(SyncMetadata)
        .filter_by(user_id=user_id)
        .order_by(SyncMetadata.entity_type.asc())
        .all()
    )
