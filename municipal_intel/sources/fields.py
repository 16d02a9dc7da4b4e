"""Helpers for reading loosely-typed Socrata records.

Socrata returns every column as text, omits columns that are empty for a
row, and different portals encode dates differently:

- floating timestamps ``"2024-01-15T00:00:00.000"``
- ISO datetimes with an offset ``"2024-01-15T00:00:00Z"``
- plain dates ``"2024-01-15"``
- US-style dates ``"01/15/2024"`` (NYC DOB)

These helpers are used by the per-dataset derivation functions. ``text`` and
``join`` never raise; ``parse_date`` and ``parse_number`` raise ``ValueError``
on malformed input so a derivation can fail loudly and the normaliser can
substitute its fallback description.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Mapping

_DATE_FORMATS = ("%m/%d/%Y", "%m/%d/%Y %H:%M:%S", "%Y%m%d")


def text(record: Mapping[str, Any], field: str) -> str:
    """Return ``record[field]`` stripped, or ``""`` when absent."""
    value = record.get(field)
    if value is None:
        return ""
    return str(value).strip()


def join(*parts: str, sep: str = " ") -> str:
    """Join the non-empty *parts* with *sep*."""
    return sep.join(p for p in parts if p)


def parse_date(value: Any) -> date | None:
    """Parse a source date in any of the supported encodings.

    Returns ``None`` for missing/empty values.

    Raises:
        ValueError: The value is present but matches no known encoding.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Unrecognised date: {raw!r}")


def parse_number(value: Any) -> float | None:
    """Parse a text-encoded number such as ``"50000"`` or ``"$1,250.00"``."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    raw = str(value).strip().replace(",", "").replace("$", "")
    if not raw:
        return None
    return float(raw)


def format_date(value: Any) -> str:
    parsed = parse_date(value)
    return parsed.strftime("%B %d, %Y") if parsed else ""


def format_money(value: Any) -> str:
    amount = parse_number(value)
    if amount is None:
        return ""
    return f"${amount:,.0f}"
