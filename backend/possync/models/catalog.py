from __future__ import annotations

from ..extensions import db
from possync.time_utils import to_utc_z, utcnow


class Item(db.Model):
    """
    Catalog item owned by one user, mirrored from offline clients.

    IDENTITY: The primary key is (user_id, id) where id is generated by the
    client while offline. The same client id from two users never collides.

    SOFT DELETE: Rows are never physically removed. deleted_at is a tombstone
    so deletions propagate to other devices through pull.

    INVENTORY: inventory_qty is a stored running quantity. Completed
    transactions decrement it and it may go negative.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.UniqueConstraint("user_id", "idempotency_key", name="uq_items_user_idempotency"),
        # Pull scans by (user_id, updated_at)
        db.Index("ix_items_user_updated", "user_id", "updated_at"),
        db.Index("ix_items_barcode", "barcode"),
    )

    user_id = db.Column(db.String(64), primary_key=True)
    id = db.Column(db.String(64), primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    barcode = db.Column(db.String(128), nullable=True)
    sku = db.Column(db.String(128), nullable=True)
    price = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    unit = db.Column(db.String(32), nullable=True, default="piece")
    inventory_qty = db.Column(db.Numeric(14, 3, asdecimal=False), nullable=False, default=0)
    category = db.Column(db.String(128), nullable=True, index=True)
    recommended = db.Column(db.Boolean, nullable=False, default=False)
    image_path = db.Column(db.String(512), nullable=True)

    idempotency_key = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    deleted_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "barcode": self.barcode,
            "sku": self.sku,
            "price": self.price,
            "unit": self.unit,
            "inventory_qty": self.inventory_qty,
            "category": self.category,
            "recommended": self.recommended,
            "image_path": self.image_path,
            "idempotency_key": self.idempotency_key,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
        }
