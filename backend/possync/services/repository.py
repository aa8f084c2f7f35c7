# Overview: Storage access for synced entity types; one repository per model on the shared session.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Customer, Item, Transaction
from .concurrency import lock_for_update


class SyncRepository:
    """
    Storage capability the sync engine needs for one entity type.

    All repositories share db.session, so every write made through them
    during a push lands in the same database transaction and commits (or
    rolls back) together.
    """

    def __init__(self, entity_type: str, model):
        self.entity_type = entity_type
        self.model = model

    def get(self, user_id: str, record_id: str, *, lock: bool = False):
        """Point lookup by (user_id, id), tombstones included."""
        query = db.session.query(self.model).filter_by(user_id=user_id, id=record_id)
        if lock:
            query = lock_for_update(query)
        return query.first()

    def get_by_idempotency_key(self, user_id: str, idempotency_key: str):
        """Point lookup by (user_id, idempotency_key), tombstones included."""
        return (
            db.session.query(self.model)
            .filter_by(user_id=user_id, idempotency_key=idempotency_key)
            .first()
        )

    def scan_since(self, user_id: str, since: datetime) -> list:
        """
        Rows of the user with updated_at > since, oldest first.

        Tombstoned rows are returned so deletes reach other devices.
        """
        return (
            db.session.query(self.model)
            .filter(self.model.user_id == user_id, self.model.updated_at > since)
            .order_by(self.model.updated_at.asc(), self.model.id.asc())
            .all()
        )

    def add(self, record):
        """Stage a new row and flush so constraint violations surface here."""
        db.session.add(record)
        db.session.flush()
        return record

    def save(self, record):
        """Flush pending changes of an existing row."""
        db.session.flush()
        return record


REPOSITORIES = {
    "items": SyncRepository("items", Item),
    "customers": SyncRepository("customers", Customer),
    "transactions": SyncRepository("transactions", Transaction),
}


def get_repository(entity_type: str) -> SyncRepository:
    repo = REPOSITORIES.get(entity_type)
    if repo is None:
        raise ValueError(f"Unknown entity type: {entity_type}")
    return repo
