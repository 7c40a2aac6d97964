"""
Deterministic hashing utilities.

Every "already exists" check in the core goes through one fingerprint
function per entity defined here, so the same inputs always produce the
same key regardless of who computes it.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

SYNTHETIC_FITID_PREFIX = "HASH_"


def json_default(obj: Any) -> Any:
    """JSON serializer for Decimal, date, datetime, UUID and bytes."""
    if isinstance(obj, Decimal):
        return str(obj.normalize())
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, bytes):
        return obj.hex()

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: Any) -> str:
    """
    Convert data to canonical JSON: sorted keys, no whitespace, stable
    rendering of Decimal / datetime / UUID.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=json_default,
    )


def hash_payload(payload: Any) -> str:
    """Hex SHA-256 of the canonical JSON form of ``payload``."""
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def synthetic_fit_id(posted_date: str, amount: str, memo: str) -> str:
    """
    Stable transaction id for bank feeds that omit FITID.

    ``HASH_`` + first 16 hex chars of sha256("date|amount|memo").  The same
    (date, amount, memo) triple always yields the same id, which is what
    makes re-imports of FITID-less statements deduplicate.
    """
    raw = f"{posted_date}|{amount}|{memo}"
    digest = hashlib.sha256(raw.encode("utf-8")).hexdigest()
    return f"{SYNTHETIC_FITID_PREFIX}{digest[:16]}"


def _normalize_quantity(quantity: Any) -> str:
    if quantity is None:
        return "0"
    value = Decimal(str(quantity)).normalize()
    # normalize() renders 10 as 1E+1
    return format(value, "f")


def item_content_key(
    product_id: Any,
    quantity: Any,
    customization_option_id: Any = None,
    customization_description: str | None = None,
) -> str:
    """
    Fingerprint of a budget/production-order line: product + quantity +
    customization.

    Used to detect which budget items are already represented in a
    production order, independent of list position.  Quantity is
    normalized so 10, 10.0 and 10.000 produce the same key.
    """
    parts = (
        str(product_id),
        _normalize_quantity(quantity),
        str(customization_option_id) if customization_option_id else "-",
        (customization_description or "").strip().lower(),
    )
    return "|".join(parts)
