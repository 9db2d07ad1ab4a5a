from __future__ import annotations

from ..extensions import db
from posledger.time_utils import to_utc_z, utcnow


class StoreSettings(db.Model):
    """
    Store-wide policy switches. There is at most one row (id=1).

    allow_negative_stock lets a sale go through even when the till's stock
    count says there isn't enough on hand (miscounted shelves, unreceived
    deliveries). Off by default.
    """
    __tablename__ = "store_settings"

    id = db.Column(db.Integer, primary_key=True)
    allow_negative_stock = db.Column(db.Boolean, nullable=False, default=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "allow_negative_stock": self.allow_negative_stock,
            "updated_at": to_utc_z(self.updated_at),
        }
