"""misfit_crawler.shared

Records and helpers shared by the extractor, the identity store, the
aggregator and the CLI. Includes the Member/Submission/Comment records,
RunCounters, the domain exceptions and run-report writing.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from misfit_crawler.normalize import normalize_alias, normalize_handle, trim


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class StateFileError(OSError):
    """Raised when the state file is missing or not read/write accessible on save."""


class DuplicateMemberError(ValueError):
    """Raised when a member is added under a handle that is already tracked."""


class IdentityMapError(ValueError):
    """Raised when an identity map file fails schema validation."""


# ---------------------------------------------------------------------------
# Member
# ---------------------------------------------------------------------------

@dataclass
class Member:
    """One tracked community member.

    handle is fixed once the member exists and secondary_handle is only
    ever filled in while blank; the alias list and the two counters grow.
    """

    handle: str | None
    secondary_handle: str | None = None
    aliases: list[str] = field(default_factory=list)
    report_count: int = 0
    signup_count: int = 0

    @property
    def handle_key(self) -> str | None:
        return normalize_handle(self.handle)

    def increment_report_count(self) -> None:
        self.report_count += 1

    def increment_signup_count(self) -> None:
        self.signup_count += 1

    def add_alias(self, alias: str) -> bool:
        """Append alias unless an equivalent one is already present."""
        norm = normalize_alias(alias)
        if norm is None:
            return False
        if any(normalize_alias(a) == norm for a in self.aliases):
            return False
        self.aliases.append(trim(alias))  # type: ignore[arg-type]
        return True

    def matches_text(self, text_norm: str) -> bool:
        """True if any alias is contained in the already-normalized text."""
        for alias in self.aliases:
            alias_norm = normalize_alias(alias)
            if alias_norm and alias_norm in text_norm:
                return True
        return False


# ---------------------------------------------------------------------------
# Feed records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Submission:
    id: str
    title: str
    flair: str | None
    author: str | None
    created_utc: float
    num_comments: int
    body_html: str = ""

    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp(self.created_utc, tz=timezone.utc)


@dataclass(frozen=True)
class Comment:
    id: str
    author: str | None
    body: str = ""


@dataclass(frozen=True)
class SignupSlot:
    """One (role, player) row from a sign-up roster."""

    role: str
    player_name: str


# ---------------------------------------------------------------------------
# RunCounters
# ---------------------------------------------------------------------------

@dataclass
class RunCounters:
    # Report flow
    report_submissions_seen: int = 0
    report_submissions_processed: int = 0
    report_submissions_skipped_marker: int = 0
    comments_read: int = 0
    comments_counted: int = 0
    comments_skipped_deleted: int = 0
    comments_skipped_self: int = 0
    comments_skipped_excluded: int = 0
    comments_skipped_duplicate: int = 0
    members_created: int = 0
    # Sign-up flow
    event_submissions_processed: int = 0
    event_submissions_without_roster: int = 0
    slots_extracted: int = 0
    signups_counted: int = 0
    names_unresolved: int = 0
    names_unresolved_new: int = 0
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        d = {k: v for k, v in self.__dict__.items() if k != "warnings"}
        d["warnings"] = self.warnings[:50]
        return d


# ---------------------------------------------------------------------------
# Report writer
# ---------------------------------------------------------------------------

def write_run_report(
    run_id: str,
    started_at: str,
    command: str,
    timeframe: str | None,
    state_path: str,
    counters: RunCounters,
    report_dir: Path = Path("./artifacts/reports"),
) -> Path:
    report = {
        "run_id": run_id,
        "command": command,
        "timeframe": timeframe,
        "started_at": started_at,
        "finished_at": datetime.utcnow().isoformat(),
        "state_path": state_path,
        "counters": counters.to_dict(),
    }
    report_path = report_dir / f"{run_id}.json"
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(json.dumps(report, indent=2, default=str))
    return report_path
