"""Cell coercion and vocabulary normalisation for sheet values."""

from typing import Any

from .constants import (
    INVENTORY_POLICY_ALIASES,
    PRODUCT_STATUSES,
    TAXONOMY_CATEGORY_GID,
    WEIGHT_UNIT_ALIASES,
)


def is_empty(value: Any) -> bool:
    """True for None and whitespace-only cells."""
    return value is None or str(value).strip() == ""


def clean(value: Any) -> str | None:
    """Stripped string value of a cell, or None when empty."""
    if is_empty(value):
        return None
    return str(value).strip()


def to_bool(value: Any) -> bool | None:
    """Parse sheet booleans (TRUE/false/1/no/...). Unknown values give None."""
    if isinstance(value, bool):
        return value
    if is_empty(value):
        return None
    s = str(value).strip().lower()
    if s in ("true", "1", "yes", "y"):
        return True
    if s in ("false", "0", "no", "n"):
        return False
    return None


def to_number(value: Any) -> float | None:
    if is_empty(value):
        return None
    try:
        return float(str(value).strip())
    except (ValueError, OverflowError):
        return None


def to_integer(value: Any) -> int | None:
    """Integer value of a cell; "5.0" counts, "5.5" and text do not."""
    number = to_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def normalize_status(value: Any) -> str | None:
    """Map sheet status text onto the ProductStatus vocabulary."""
    s = str(value or "").strip().upper()
    if not s:
        return None
    if s in PRODUCT_STATUSES:
        return s
    if s == "LIVE":
        return "ACTIVE"
    # Anything else is passed through for the API to validate
    return s


def normalize_inventory_policy(value: Any) -> str | None:
    """Map sheet inventory policy onto DENY / CONTINUE."""
    s = str(value or "").strip().upper()
    if not s:
        return None
    return INVENTORY_POLICY_ALIASES.get(s, s)


def normalize_weight_unit(value: Any) -> str | None:
    """Map a weight unit onto GRAMS / KILOGRAMS / POUNDS / OUNCES.

    Unrecognised units give None so the measurement can be dropped.
    """
    if is_empty(value):
        return None
    return WEIGHT_UNIT_ALIASES.get(str(value).strip().lower())


def normalize_category_id(value: Any) -> str | None:
    """Turn a taxonomy category id into its global id form."""
    raw = clean(value)
    if raw is None:
        return None
    if raw.startswith("gid://"):
        return raw
    return f"{TAXONOMY_CATEGORY_GID}{raw}"


def split_list(value: Any) -> list[str]:
    """Split a comma separated cell, dropping blanks and keeping order."""
    if is_empty(value):
        return []
    return [part.strip() for part in str(value).split(",") if part.strip()]
