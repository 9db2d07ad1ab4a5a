# Overview: Store-level policy switches read by checkout.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import StoreSettings

SETTINGS_ROW_ID = 1


class SettingsError(ValueError):
    pass


def get_store_settings() -> StoreSettings | None:
    return db.session.get(StoreSettings, SETTINGS_ROW_ID)


def allow_negative_stock() -> bool:
    """
    Negative-stock policy in effect right now.

    The store_settings row wins; without one, ALLOW_NEGATIVE_STOCK from the
    app config applies (False unless configured).
    """
    row = get_store_settings()
    if row is not None:
        return bool(row.allow_negative_stock)
    return bool(current_app.config.get("ALLOW_NEGATIVE_STOCK", False))


def update_store_settings(*, allow_negative_stock: bool) -> StoreSettings:
    if not isinstance(allow_negative_stock, bool):
        raise SettingsError("allow_negative_stock must be a boolean")

    row = get_store_settings()
    if row is None:
        row = StoreSettings(id=SETTINGS_ROW_ID, allow_negative_stock=allow_negative_stock)
        db.session.add(row)
    else:
        row.allow_negative_stock = allow_negative_stock

    db.session.commit()
    current_app.logger.info("Store settings updated: allow_negative_stock=%s", allow_negative_stock)
    return row


def effective_settings() -> dict:
    row = get_store_settings()
    return {
        "allow_negative_stock": allow_negative_stock(),
        "source": "store_settings" if row is not None else "config",
        "updated_at": row.to_dict()["updated_at"] if row is not None else None,
    }
