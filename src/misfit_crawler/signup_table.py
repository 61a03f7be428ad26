"""misfit_crawler.signup_table

Sign-up roster extraction from event post bodies.

Event posts are written in a rich-text editor, so the roster table has no
schema guarantee. Discovery rules:
  - Only the fragment's direct element children ("top-level blocks") are
    walked; each block's own element children are checked for <table>.
    Quoted text and embedded media nested deeper are never scanned.
  - Rows are a table's direct <tr> children plus the <tr> children of a
    direct <tbody>. <thead> rows are column headers and are not rows.
  - A table is a roster only if it has at least MIN_SIGNUP_ROWS rows.
  - The first block holding any roster table wins; later blocks are ignored.

Per row, only <td>/<th> cells are read, each through its first text node.
A row becomes a SignupSlot(role, player_name) from its first two cells
unless either one is a placeholder (missing, empty, or starting with '-').
"""

from __future__ import annotations

import logging

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PreformattedString, Tag

from misfit_crawler.normalize import is_placeholder_cell, trim
from misfit_crawler.shared import SignupSlot

log = logging.getLogger(__name__)

MIN_SIGNUP_ROWS = 10

_CELL_TAGS = ("td", "th")
_ROW_GROUP_TAGS = ("tbody",)


# ---------------------------------------------------------------------------
# DOM helpers
# ---------------------------------------------------------------------------

def _child_tags(tag: Tag) -> list[Tag]:
    return [c for c in tag.children if isinstance(c, Tag)]


def first_text_node(tag: Tag) -> str | None:
    """Return the first text node under tag in depth-first pre-order.

    Comments, CDATA and other non-text strings are skipped. Returns None
    when the subtree holds no text node at all.
    """
    for node in tag.descendants:
        if isinstance(node, NavigableString) and not isinstance(node, PreformattedString):
            return str(node)
    return None


def _table_rows(table: Tag) -> list[Tag]:
    rows: list[Tag] = []
    for child in _child_tags(table):
        if child.name == "tr":
            rows.append(child)
        elif child.name in _ROW_GROUP_TAGS:
            rows.extend(c for c in _child_tags(child) if c.name == "tr")
    return rows


def find_signup_rows(html: str | None) -> list[Tag]:
    """Return the <tr> elements of the first block holding roster-sized tables."""
    if not trim(html):
        return []
    soup = BeautifulSoup(html, "html.parser")

    for block in _child_tags(soup):
        rows: list[Tag] = []
        for table in _child_tags(block):
            if table.name != "table":
                continue
            table_rows = _table_rows(table)
            if len(table_rows) < MIN_SIGNUP_ROWS:
                log.debug(
                    "Ignoring table with %d rows (< %d)", len(table_rows), MIN_SIGNUP_ROWS
                )
                continue
            rows.extend(table_rows)
        if rows:
            return rows
    return []


# ---------------------------------------------------------------------------
# Row → slot
# ---------------------------------------------------------------------------

def parse_signup_row(row: Tag) -> SignupSlot | None:
    """Build a slot from a row's first two cells, or None for non-data rows."""
    cells = [c for c in _child_tags(row) if c.name in _CELL_TAGS]
    if len(cells) < 2:
        return None
    role = first_text_node(cells[0])
    player = first_text_node(cells[1])
    if is_placeholder_cell(role) or is_placeholder_cell(player):
        return None
    return SignupSlot(role=trim(role), player_name=trim(player))  # type: ignore[arg-type]


def extract_signup_slots(html: str | None) -> list[SignupSlot]:
    """Return the sign-up slots of a post body, in document order.

    Returns [] when the body holds no roster table.
    """
    slots: list[SignupSlot] = []
    for row in find_signup_rows(html):
        slot = parse_signup_row(row)
        if slot is not None:
            slots.append(slot)
    return slots
