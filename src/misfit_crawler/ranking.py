"""misfit_crawler.ranking

Leaderboard ordering for the ``rank`` command.

Members are ordered by the chosen counter, highest first; ties are broken
by the primary handle (case-insensitive, ascending). The secondary handle
never takes part in ordering.
"""

from __future__ import annotations

from typing import Iterable

from misfit_crawler.shared import Member

RANK_FIELDS = {
    "report": "report_count",
    "signup": "signup_count",
}


def rank_members(
    members: Iterable[Member],
    by: str = "report",
    include_zero: bool = True,
) -> list[Member]:
    if by not in RANK_FIELDS:
        raise ValueError(f"unknown ranking field: {by!r} (expected one of {sorted(RANK_FIELDS)})")
    attr = RANK_FIELDS[by]
    pool = [m for m in members if include_zero or getattr(m, attr) > 0]
    return sorted(pool, key=lambda m: (-getattr(m, attr), m.handle_key or "", m.handle or ""))


def format_ranking(ranked: list[Member], by: str = "report") -> list[str]:
    """Render ranked members as numbered lines; tied members share a position."""
    attr = RANK_FIELDS[by]
    lines: list[str] = []
    position = 0
    previous: int | None = None
    for idx, member in enumerate(ranked, start=1):
        count = getattr(member, attr)
        if count != previous:
            position = idx
            previous = count
        label = member.handle or ""
        if member.secondary_handle:
            label = f"{label} ({member.secondary_handle})"
        lines.append(f"{position}. {label} - {count}")
    return lines
