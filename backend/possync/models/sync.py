from __future__ import annotations

from ..extensions import db
from possync.time_utils import to_utc_z, utcnow


class SyncMetadata(db.Model):
    """
    Per-user, per-entity-type push bookkeeping.

    Written after a push commits. Cursors are client-held, so nothing in
    pull depends on this table; it exists for operational visibility.
    """
    __tablename__ = "sync_metadata"
    __table_args__ = (
        db.UniqueConstraint("user_id", "entity_type", name="uq_sync_metadata_user_entity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    entity_type = db.Column(db.String(32), nullable=False, index=True)  # items, customers, transactions

    last_sync_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    sync_count = db.Column(db.Integer, nullable=False, default=0)
    last_conflict_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "last_sync_at": to_utc_z(self.last_sync_at),
            "sync_count": self.sync_count,
            "last_conflict_at": to_utc_z(self.last_conflict_at) if self.last_conflict_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class VoucherSequence(db.Model):
    """
    Atomic per-user, per-company, per-day voucher counters.

    WHY: "read the highest voucher, add one" races under concurrent pushes.
    The counter row is incremented with a single UPDATE, which the database
    serializes.
    """
    __tablename__ = "voucher_sequences"
    __table_args__ = (
        db.UniqueConstraint("user_id", "company_code", "date_key", name="uq_voucher_sequences_user_code_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    company_code = db.Column(db.String(16), nullable=False)
    date_key = db.Column(db.String(8), nullable=False)  # YYYYMMDD
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "company_code": self.company_code,
            "date_key": self.date_key,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
