"""Normalization functions for handles, aliases and sign-up cell text.

All functions accept str | None and return the appropriate type or None.
"""

from __future__ import annotations

VALID_TIMEFRAMES = ("hour", "day", "week", "month", "year", "all")
DEFAULT_TIMEFRAME = "month"

PLACEHOLDER_PREFIX = "-"


# ---------------------------------------------------------------------------
# Rule 1: trim
# ---------------------------------------------------------------------------

def trim(value: str | None) -> str | None:
    """Strip leading/trailing whitespace; treat empty string as None."""
    if value is None:
        return None
    v = value.strip()
    return v if v else None


# ---------------------------------------------------------------------------
# Rule 2: normalize_handle  (for exact identity lookups)
# ---------------------------------------------------------------------------

def normalize_handle(value: str | None) -> str | None:
    """Trim and lowercase a handle.

    Handles are stored as given but always compared through this rule.
    """
    v = trim(value)
    if v is None:
        return None
    return v.lower()


# ---------------------------------------------------------------------------
# Rule 3: normalize_alias  (for substring matching of sign-up names)
# ---------------------------------------------------------------------------

def normalize_alias(value: str | None) -> str | None:
    """Trim and lowercase free text used in alias containment checks.

    Internal whitespace is left untouched so that an alias only matches
    text spelled the same way.
    """
    v = trim(value)
    if v is None:
        return None
    return v.lower()


# ---------------------------------------------------------------------------
# Rule 4: is_placeholder_cell
# ---------------------------------------------------------------------------

def is_placeholder_cell(value: str | None) -> bool:
    """True for cells that carry no sign-up data.

    Null, empty/whitespace-only, and cells starting with '-' (the
    "no entry" convention: '-', '---', '- open -') are placeholders.
    """
    v = trim(value)
    if v is None:
        return True
    return v.startswith(PLACEHOLDER_PREFIX)


# ---------------------------------------------------------------------------
# Rule 5: normalize_timeframe
# ---------------------------------------------------------------------------

def normalize_timeframe(value: str | None) -> str:
    """Return a valid search window token; unknown or missing → 'month'."""
    v = normalize_handle(value)
    if v in VALID_TIMEFRAMES:
        return v
    return DEFAULT_TIMEFRAME
