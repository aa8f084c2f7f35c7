from __future__ import annotations

from ..extensions import db
from possync.time_utils import to_utc_z, utcnow


class Transaction(db.Model):
    """
    Sale transaction recorded by an offline register.

    VOUCHERS: Clients create transactions with a provisional_voucher while
    offline. The server assigns the final, human-readable voucher_number
    ("{company_code}-{YYYYMMDD}-{sequence:04d}") when it first stores the
    transaction. voucher_number is unique per user.

    customer_id is a loose reference: clients may push a transaction before
    the customer it points at, so no foreign key is enforced.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.UniqueConstraint("user_id", "idempotency_key", name="uq_transactions_user_idempotency"),
        db.UniqueConstraint("user_id", "voucher_number", name="uq_transactions_user_voucher"),
        db.Index("ix_transactions_user_updated", "user_id", "updated_at"),
        db.Index("ix_transactions_user_date", "user_id", "date"),
    )

    user_id = db.Column(db.String(64), primary_key=True)
    id = db.Column(db.String(64), primary_key=True)

    customer_id = db.Column(db.String(64), nullable=True, index=True)

    voucher_number = db.Column(db.String(64), nullable=True)
    provisional_voucher = db.Column(db.String(64), nullable=True)

    date = db.Column(db.DateTime, nullable=False, default=utcnow)

    # Monetary amounts
    subtotal = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    tax = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    discount = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    other_charges = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    grand_total = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)

    item_count = db.Column(db.Integer, nullable=False, default=0)
    unit_count = db.Column(db.Numeric(14, 3, asdecimal=False), nullable=False, default=0)

    payment_type = db.Column(db.String(32), nullable=True, default="cash")
    status = db.Column(db.String(32), nullable=False, default="completed", index=True)
    receipt_path = db.Column(db.String(512), nullable=True)

    idempotency_key = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    deleted_at = db.Column(db.DateTime, nullable=True)

    lines = db.relationship(
        "TransactionLine",
        back_populates="transaction",
        order_by="TransactionLine.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "customer_id": self.customer_id,
            "voucher_number": self.voucher_number,
            "provisional_voucher": self.provisional_voucher,
            "date": to_utc_z(self.date),
            "subtotal": self.subtotal,
            "tax": self.tax,
            "discount": self.discount,
            "other_charges": self.other_charges,
            "grand_total": self.grand_total,
            "item_count": self.item_count,
            "unit_count": self.unit_count,
            "payment_type": self.payment_type,
            "status": self.status,
            "receipt_path": self.receipt_path,
            "idempotency_key": self.idempotency_key,
            "lines": [line.to_dict() for line in self.lines],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
        }


class TransactionLine(db.Model):
    """Ordered line items on a transaction."""
    __tablename__ = "transaction_lines"
    __table_args__ = (
        db.ForeignKeyConstraint(
            ["user_id", "transaction_id"],
            ["transactions.user_id", "transactions.id"],
            name="fk_transaction_lines_transaction",
        ),
        db.Index("ix_transaction_lines_transaction", "user_id", "transaction_id"),
        {"sqlite_autoincrement": True},
    )

    pk = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False)
    transaction_id = db.Column(db.String(64), nullable=False)
    position = db.Column(db.Integer, nullable=False)

    item_id = db.Column(db.String(64), nullable=True)
    item_name = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Numeric(14, 3, asdecimal=False), nullable=False, default=0)
    unit = db.Column(db.String(32), nullable=True)
    unit_price = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    line_total = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)

    transaction = db.relationship("Transaction", back_populates="lines")

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "unit": self.unit,
            "unit_price": self.unit_price,
            "line_total": self.line_total,
        }
