"""Shared helpers for platform -> canonical translation.

Platform payloads are loosely typed: numbers arrive as strings, collections
are missing or null, and some APIs encode a one-element list as a bare object.
These helpers normalize those shapes without ever touching the network or DB.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any

from app.services.errors import TranslationError
from app.services.records import AddressRecord

UNKNOWN_BRAND = "Unknown"
UNCATEGORIZED = "Uncategorized"
PLACEHOLDER_IMAGE_URL = "https://via.placeholder.com/400"


def as_list(value: Any) -> list[Any]:
    """Normalize a possibly-missing collection into a list.

    None -> [], list -> list, single object -> [object].
    """
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return [v for v in value if v is not None]
    return [value]


def dig(data: Any, *path: str | int) -> Any:
    """Walk nested dicts/lists, returning None as soon as a step is missing."""
    current = data
    for step in path:
        if isinstance(step, int):
            items = as_list(current)
            if step >= len(items):
                return None
            current = items[step]
        elif isinstance(current, dict):
            current = current.get(step)
        else:
            return None
        if current is None:
            return None
    return current


def _to_float(value: Any) -> float | None:
    """Finite float from a number or numeric string; None otherwise."""
    try:
        parsed = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError, OverflowError):
        return None
    return parsed if math.isfinite(parsed) else None


def parse_money(value: Any) -> float:
    """Parse a numeric field, falling back to 0.0 on anything unparsable."""
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return 0.0
    parsed = _to_float(value)
    return 0.0 if parsed is None else parsed


def parse_required_price(value: Any, field_name: str = "price") -> float:
    """Parse a price the record cannot do without.

    A missing price means 0.0; a price that is present but not a finite
    number is a malformed payload.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0.0
    parsed = None
    if isinstance(value, (int, float, str)) and not isinstance(value, bool):
        parsed = _to_float(value)
    if parsed is None:
        raise TranslationError(f"Invalid {field_name}: {value!r}")
    return parsed


def non_negative(value: float) -> float:
    return value if value > 0 else 0.0


def parse_int(value: Any) -> int:
    """Parse an integer field, falling back to 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, (float, str)):
        parsed = _to_float(value)
        return 0 if parsed is None else int(parsed)
    return 0


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def split_tags(value: Any) -> set[str]:
    """Split a comma-delimited tag string (or list) into a set."""
    if not value:
        return set()
    if isinstance(value, str):
        parts = value.split(",")
    else:
        parts = [str(v) for v in as_list(value)]
    return {p.strip() for p in parts if p and p.strip()}


def has_tag(tags: set[str], tag: str) -> bool:
    return tag.lower() in {t.lower() for t in tags}


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO 8601 timestamp; None when absent or unparsable."""
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def external_id(value: Any, field_name: str = "id") -> str:
    """Stringify a platform id, rejecting missing ones."""
    if value is None or value == "":
        raise TranslationError(f"Missing {field_name}")
    return str(value)


def optional_id(value: Any) -> str | None:
    if value is None or value == "" or value == 0 or value == "0":
        return None
    return str(value)


def optional_str(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def translate_address(data: Any) -> AddressRecord | None:
    """Map a Shopify-style address dict; None when absent."""
    if not isinstance(data, dict) or not data:
        return None
    return AddressRecord(
        first_name=optional_str(data.get("first_name")),
        last_name=optional_str(data.get("last_name")),
        company=optional_str(data.get("company")),
        address1=optional_str(data.get("address1")),
        address2=optional_str(data.get("address2")),
        city=optional_str(data.get("city")),
        province=optional_str(data.get("province")),
        country=optional_str(data.get("country")),
        zip=optional_str(data.get("zip")),
        phone=optional_str(data.get("phone")),
    )
