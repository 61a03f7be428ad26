"""Unit tests for roster extraction (misfit_crawler.signup_table).

No network access required.
"""

from __future__ import annotations

from bs4 import BeautifulSoup

from misfit_crawler.shared import SignupSlot
from misfit_crawler.signup_table import (
    MIN_SIGNUP_ROWS,
    extract_signup_slots,
    find_signup_rows,
    first_text_node,
    parse_signup_row,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _row(*cells: str, tag: str = "td") -> str:
    return "<tr>" + "".join(f"<{tag}>{c}</{tag}>" for c in cells) + "</tr>"


def _table(rows: list[tuple[str, ...]], tbody: bool = True, header: bool = True) -> str:
    head = "<thead>" + _row("Role", "Player", tag="th") + "</thead>" if header else ""
    body = "".join(_row(*r) for r in rows)
    if tbody:
        body = f"<tbody>{body}</tbody>"
    return f"<table>{head}{body}</table>"


def _roster(n: int, prefix: str = "player") -> list[tuple[str, str]]:
    return [(f"Role {i}", f"{prefix}{i}") for i in range(1, n + 1)]


def _post(*blocks: str) -> str:
    """Wrap blocks the way Reddit renders a self-post body."""
    return '<!-- SC_OFF --><div class="md">' + "".join(blocks) + "</div><!-- SC_ON -->"


def _tr(html: str):
    return BeautifulSoup(f"<table>{html}</table>", "html.parser").find("tr")


# ---------------------------------------------------------------------------
# first_text_node
# ---------------------------------------------------------------------------

class TestFirstTextNode:
    def test_direct_text(self):
        cell = BeautifulSoup("<td>Pilot</td>", "html.parser").td
        assert first_text_node(cell) == "Pilot"

    def test_nested_text_depth_first(self):
        cell = BeautifulSoup("<td><strong><em>Lead</em></strong> tail</td>", "html.parser").td
        assert first_text_node(cell) == "Lead"

    def test_empty_cell_returns_none(self):
        cell = BeautifulSoup("<td></td>", "html.parser").td
        assert first_text_node(cell) is None

    def test_cell_with_only_elements_returns_none(self):
        cell = BeautifulSoup("<td><br/><img src='x'/></td>", "html.parser").td
        assert first_text_node(cell) is None

    def test_comment_is_not_text(self):
        cell = BeautifulSoup("<td><!-- note --><b>Medic</b></td>", "html.parser").td
        assert first_text_node(cell) == "Medic"


# ---------------------------------------------------------------------------
# parse_signup_row
# ---------------------------------------------------------------------------

class TestParseSignupRow:
    def test_two_cells(self):
        assert parse_signup_row(_tr(_row("Pilot", "jsmith99"))) == SignupSlot("Pilot", "jsmith99")

    def test_extra_cells_ignored(self):
        slot = parse_signup_row(_tr(_row("Pilot", "jsmith99", "notes", "more")))
        assert slot == SignupSlot("Pilot", "jsmith99")

    def test_th_cells_count(self):
        slot = parse_signup_row(_tr("<tr><th>Lead</th><td>Bob</td></tr>"))
        assert slot == SignupSlot("Lead", "Bob")

    def test_values_trimmed(self):
        slot = parse_signup_row(_tr(_row("  Pilot ", " Jo Smith  ")))
        assert slot == SignupSlot("Pilot", "Jo Smith")

    def test_single_cell_rejected(self):
        assert parse_signup_row(_tr(_row("Pilot"))) is None

    def test_placeholder_player_rejected(self):
        assert parse_signup_row(_tr(_row("Pilot", "---"))) is None

    def test_placeholder_role_rejected(self):
        assert parse_signup_row(_tr(_row("-", "Bob"))) is None

    def test_empty_player_rejected(self):
        assert parse_signup_row(_tr(_row("Pilot", ""))) is None

    def test_null_player_rejected(self):
        assert parse_signup_row(_tr(_row("Pilot", "<br/>"))) is None


# ---------------------------------------------------------------------------
# find_signup_rows / extract_signup_slots
# ---------------------------------------------------------------------------

class TestExtractSignupSlots:
    def test_threshold_constant(self):
        assert MIN_SIGNUP_ROWS == 10

    def test_empty_html(self):
        assert extract_signup_slots("") == []
        assert extract_signup_slots(None) == []

    def test_no_table(self):
        assert extract_signup_slots(_post("<p>Op briefing tonight</p>")) == []

    def test_ten_row_table_accepted(self):
        slots = extract_signup_slots(_post(_table(_roster(10))))
        assert len(slots) == 10
        assert slots[0] == SignupSlot("Role 1", "player1")
        assert slots[-1] == SignupSlot("Role 10", "player10")

    def test_nine_row_table_rejected(self):
        assert extract_signup_slots(_post(_table(_roster(9)))) == []

    def test_thead_row_not_counted(self):
        # 9 body rows + 1 header row is still below the threshold.
        assert find_signup_rows(_post(_table(_roster(9), header=True))) == []

    def test_rows_without_tbody(self):
        slots = extract_signup_slots(_post(_table(_roster(11), tbody=False, header=False)))
        assert len(slots) == 11

    def test_twelve_rows_two_placeholders(self):
        rows = _roster(12)
        rows[3] = ("Role 4", "---")
        rows[8] = ("Role 9", "---")
        slots = extract_signup_slots(_post(_table(rows)))
        assert len(slots) == 10
        assert all(s.player_name != "---" for s in slots)

    def test_small_legend_table_skipped_roster_used(self):
        legend = _table([("Key", "Meaning"), ("*", "reserve")])
        slots = extract_signup_slots(_post(legend, _table(_roster(10))))
        assert len(slots) == 10

    def test_multiple_roster_tables_in_first_block(self):
        html = _post(_table(_roster(10, "a")), _table(_roster(10, "b")))
        slots = extract_signup_slots(html)
        assert len(slots) == 20
        assert slots[10].player_name == "b1"

    def test_first_block_wins(self):
        html = (
            f"<div>{_table(_roster(10, 'first'))}</div>"
            f"<div>{_table(_roster(10, 'second'))}</div>"
        )
        slots = extract_signup_slots(html)
        assert len(slots) == 10
        assert all(s.player_name.startswith("first") for s in slots)

    def test_later_block_used_when_first_has_no_roster(self):
        html = (
            f"<div>{_table(_roster(3, 'small'))}</div>"
            f"<div>{_table(_roster(10, 'real'))}</div>"
        )
        slots = extract_signup_slots(html)
        assert len(slots) == 10
        assert slots[0].player_name == "real1"

    def test_deeply_nested_table_ignored(self):
        html = _post(f"<blockquote>{_table(_roster(12))}</blockquote>")
        assert extract_signup_slots(html) == []

    def test_top_level_table_not_scanned(self):
        # Tables are looked for among the children of top-level blocks only.
        assert extract_signup_slots(_table(_roster(12))) == []

    def test_formatted_cells(self):
        rows = [(f"<strong>Role {i}</strong>", f"<a href='/u/p{i}'>p{i}</a>") for i in range(10)]
        slots = extract_signup_slots(_post(_table(rows)))
        assert len(slots) == 10
        assert slots[0] == SignupSlot("Role 0", "p0")

    def test_malformed_rows_skipped_others_kept(self):
        rows: list[tuple[str, ...]] = _roster(10)
        rows.append(("only-one-cell",))
        rows.append(("", "nobody"))
        slots = extract_signup_slots(_post(_table(rows)))
        assert len(slots) == 10
