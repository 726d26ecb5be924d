import math
from decimal import Decimal
from typing import Any, Optional

TRUE_STRINGS = {"true", "1", "yes", "y"}
FALSE_STRINGS = {"false", "0", "no", "n"}


def to_number_or_null(value: Any) -> Optional[float]:
    """
    Coerce an arbitrary input into a finite float, or None.

    - None / "" / whitespace-only strings -> None ("not set")
    - numbers pass through (booleans count as 1 / 0)
    - numeric strings are parsed, accepting comma grouping ("1,234.50")
    - anything that does not parse, or parses to NaN / Infinity -> None

    Never raises.
    """
    if value is None:
        return None

    if isinstance(value, (bool, int, float, Decimal)):
        try:
            number = float(value)
        except (OverflowError, ValueError):
            return None
        return number if math.isfinite(number) else None

    if isinstance(value, str):
        text = value.strip().replace(",", "")
        # float() accepts "1_000"; stored amounts never do
        if not text or "_" in text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
        return number if math.isfinite(number) else None

    return None


def to_number_or_zero(value: Any) -> float:
    """Same as to_number_or_null, for callers that need 0 instead of None."""
    number = to_number_or_null(value)
    return 0.0 if number is None else number


def to_boolean(value: Any) -> bool:
    """
    Coerce flags coming from forms, query strings and JSON columns.

    Strings are matched case-insensitively against yes/no vocabularies;
    everything else falls back to plain truthiness, except containers which
    count as set even when empty.
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    # comparing a signaling NaN raises; any NaN counts as set
    if isinstance(value, Decimal) and value.is_nan():
        return True
    if isinstance(value, (int, float, Decimal)):
        return value != 0
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in TRUE_STRINGS:
            return True
        if normalized in FALSE_STRINGS:
            return False
        return bool(value)
    if isinstance(value, (list, tuple, dict, set)):
        return True
    return bool(value)
