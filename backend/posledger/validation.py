from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .money import to_decimal

# Maximum price: 9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

# 100% in basis points
MAX_TAX_RATE_BPS = 10_000


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    - writable_fields: what clients are allowed to set
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer parsing: ints and plain-digit strings only.

    Floats, decimals, booleans and scientific notation are refused so that
    "12.5" cents can never be silently truncated.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def coerce_decimal(value: Any, field: str) -> Decimal:
    try:
        return to_decimal(value)
    except ValueError:
        raise ValidationError(f"{field} must be a number")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(value, col.key)

    if isinstance(coltype, Numeric):
        return coerce_decimal(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """Business rules for catalog rows that column metadata cannot express."""
    for key in ("price_cents", "cost_cents"):
        value = patch.get(key)
        if value is None:
            continue
        if value < 0:
            raise ValidationError(f"{key} must be >= 0")
        if value > MAX_PRICE_CENTS:
            raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS}")

    rate = patch.get("tax_rate_bps")
    if rate is not None and not (0 <= rate <= MAX_TAX_RATE_BPS):
        raise ValidationError(f"tax_rate_bps must be between 0 and {MAX_TAX_RATE_BPS}")

    for key in ("quantity_on_hand", "reorder_level"):
        value = patch.get(key)
        if value is not None and value < 0:
            raise ValidationError(f"{key} must be >= 0")


def parse_checkout_payload(data: Any) -> dict:
    """
    Normalize a POST /api/checkout body into checkout_service.checkout kwargs.

    Only shape and type are checked here. Business rules (empty cart,
    quantity > 0, negative tender amounts, stock) belong to the checkout
    engine so they are reported with their own error kinds.
    """
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    if data.get("buyer_id") is None:
        raise ValidationError("buyer_id required")
    buyer_id = coerce_int(data["buyer_id"], "buyer_id")

    discount_cents = coerce_int(data.get("discount_cents", 0) or 0, "discount_cents")

    split_raw = data.get("payment_split") or {}
    if not isinstance(split_raw, dict):
        raise ValidationError("payment_split must be an object")
    # Unknown keys are passed through so checkout reports them as invalid_payment
    payment_split = dict(split_raw)
    for key in ("cash_cents", "card_cents", "other_cents"):
        if key in payment_split:
            payment_split[key] = coerce_int(payment_split[key] or 0, f"payment_split.{key}")

    items_raw = data.get("items")
    if items_raw is None:
        items_raw = []
    if not isinstance(items_raw, list):
        raise ValidationError("items must be a list")

    items = []
    for index, raw in enumerate(items_raw):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        if raw.get("product_id") is None or raw.get("quantity") is None:
            raise ValidationError(f"items[{index}] requires product_id and quantity")
        items.append({
            "product_id": coerce_int(raw["product_id"], f"items[{index}].product_id"),
            "quantity": coerce_decimal(raw["quantity"], f"items[{index}].quantity"),
        })

    return {
        "buyer_id": buyer_id,
        "discount_cents": discount_cents,
        "payment_split": payment_split,
        "items": items,
    }
