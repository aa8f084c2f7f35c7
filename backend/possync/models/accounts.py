from __future__ import annotations

from ..extensions import db
from possync.time_utils import to_utc_z, utcnow


class Account(db.Model):
    """
    Business profile of a user, keyed by the opaque user id the auth layer
    hands over. Only the company name is needed here: its first three
    letters prefix every voucher number.
    """
    __tablename__ = "accounts"

    user_id = db.Column(db.String(64), primary_key=True)
    company_name = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "company_name": self.company_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
