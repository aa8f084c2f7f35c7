from __future__ import annotations

from ..extensions import db
from possync.time_utils import to_utc_z, utcnow


class Customer(db.Model):
    """
    Customer master data captured at the point of sale.

    Same identity and tombstone rules as Item: (user_id, id) primary key,
    client-generated id, deleted_at instead of physical deletes.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("user_id", "idempotency_key", name="uq_customers_user_idempotency"),
        db.Index("ix_customers_user_updated", "user_id", "updated_at"),
    )

    user_id = db.Column(db.String(64), primary_key=True)
    id = db.Column(db.String(64), primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(512), nullable=True)

    idempotency_key = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    deleted_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "idempotency_key": self.idempotency_key,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
        }
