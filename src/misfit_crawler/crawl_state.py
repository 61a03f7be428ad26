"""misfit_crawler.crawl_state

Durable crawl state and its JSON persistence.

CrawlState holds everything a run needs to be resumable:
  - processed_comment_ids: ledger of AAR comment ids already counted
  - excluded_handles:      handles whose comments are never counted
  - unresolved_names:      sign-up names no member matched (manual review)
  - members:               the Member collection, unique by handle

StateFile is the persistence adapter:
  - load() is a soft operation: a missing, unreadable or corrupt file logs a
    warning and leaves the state untouched.
  - save() is a hard operation: the file must already exist and be
    read/write accessible, otherwise StateFileError is raised. The snapshot
    is written to a sibling temp file and moved over the original.

File shape (key names are kept for compatibility with existing data files):

    {
      "processedAARCommentIds": ["abc123", ...],
      "excludedRedditIds": ["AutoModerator", ...],
      "unknownPlayers": ["Some Name", ...],
      "users": [
        {"redditId": "...", "discordId": "", "aliases": [...],
         "aarCount": 3, "signupCount": 5}
      ]
    }
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from misfit_crawler.normalize import normalize_handle, trim
from misfit_crawler.shared import Member, StateFileError

log = logging.getLogger(__name__)

KEY_PROCESSED = "processedAARCommentIds"
KEY_EXCLUDED = "excludedRedditIds"
KEY_UNKNOWN = "unknownPlayers"
KEY_USERS = "users"


# ---------------------------------------------------------------------------
# CrawlState
# ---------------------------------------------------------------------------

@dataclass
class CrawlState:
    processed_comment_ids: set[str] = field(default_factory=set)
    excluded_handles: set[str] = field(default_factory=set)
    unresolved_names: set[str] = field(default_factory=set)
    members: list[Member] = field(default_factory=list)

    def is_processed(self, comment_id: str) -> bool:
        return comment_id in self.processed_comment_ids

    def mark_processed(self, comment_id: str) -> None:
        self.processed_comment_ids.add(comment_id)

    def is_excluded(self, handle: str | None) -> bool:
        key = normalize_handle(handle)
        if key is None:
            return False
        return any(normalize_handle(h) == key for h in self.excluded_handles)

    def record_unresolved(self, name: str) -> bool:
        """Add a sign-up name to the review list. Returns True if it was new."""
        if name in self.unresolved_names:
            return False
        self.unresolved_names.add(name)
        return True

    def merge(self, other: CrawlState) -> None:
        """Fold other into self.

        Ledger sets are unioned. Members are matched by handle; on collision
        counters are summed and aliases unioned.
        """
        self.processed_comment_ids |= other.processed_comment_ids
        self.excluded_handles |= other.excluded_handles
        self.unresolved_names |= other.unresolved_names

        by_handle = {m.handle_key: m for m in self.members if m.handle_key}
        for incoming in other.members:
            key = incoming.handle_key
            existing = by_handle.get(key) if key else None
            if existing is None:
                self.members.append(incoming)
                if key:
                    by_handle[key] = incoming
                continue
            log.warning("Merging duplicate member entry for %s", incoming.handle)
            existing.report_count += incoming.report_count
            existing.signup_count += incoming.signup_count
            if not existing.secondary_handle and incoming.secondary_handle:
                existing.secondary_handle = incoming.secondary_handle
            for alias in incoming.aliases:
                existing.add_alias(alias)

    # -- serialization ----------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            KEY_PROCESSED: sorted(self.processed_comment_ids),
            KEY_EXCLUDED: sorted(self.excluded_handles),
            KEY_UNKNOWN: sorted(self.unresolved_names),
            KEY_USERS: [member_to_dict(m) for m in self.members],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CrawlState:
        """Build a state from a parsed file, skipping malformed entries.

        Raises:
            ValueError: If data is not a JSON object or a top-level key has
                the wrong type.
        """
        if not isinstance(data, dict):
            raise ValueError("state file root must be a JSON object")
        state = cls(
            processed_comment_ids=set(_string_list(data, KEY_PROCESSED)),
            excluded_handles=set(_string_list(data, KEY_EXCLUDED)),
            unresolved_names=set(_string_list(data, KEY_UNKNOWN)),
        )
        users = data.get(KEY_USERS)
        if users is None:
            users = []
        if not isinstance(users, list):
            raise ValueError(f"{KEY_USERS} must be a list")
        loaded = cls()
        for idx, raw in enumerate(users):
            member = member_from_dict(raw)
            if member is None:
                log.warning("Skipping malformed user entry #%d: %r", idx, raw)
                continue
            loaded.members.append(member)
        state.merge(loaded)
        return state


def _string_list(data: dict[str, Any], key: str) -> list[str]:
    values = data.get(key)
    if values is None:
        return []
    if not isinstance(values, list):
        raise ValueError(f"{key} must be a list")
    return [str(v) for v in values if v is not None and str(v) != ""]


def _count(value: Any) -> int | None:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return None
    return value


def member_to_dict(member: Member) -> dict[str, Any]:
    return {
        "redditId": member.handle or "",
        "discordId": member.secondary_handle or "",
        "aliases": list(member.aliases),
        "aarCount": member.report_count,
        "signupCount": member.signup_count,
    }


def member_from_dict(raw: Any) -> Member | None:
    """Parse one user entry; None when it lacks a handle or has bad counters."""
    if not isinstance(raw, dict):
        return None
    handle = trim(raw.get("redditId")) if isinstance(raw.get("redditId"), str) else None
    if handle is None:
        return None
    secondary = raw.get("discordId")
    aliases = raw.get("aliases") or []
    if not isinstance(aliases, list):
        return None
    report_count = _count(raw.get("aarCount"))
    signup_count = _count(raw.get("signupCount"))
    if report_count is None or signup_count is None:
        return None
    return Member(
        handle=handle,
        secondary_handle=trim(secondary) if isinstance(secondary, str) else None,
        aliases=[a for a in aliases if isinstance(a, str) and trim(a)],
        report_count=report_count,
        signup_count=signup_count,
    )


# ---------------------------------------------------------------------------
# StateFile
# ---------------------------------------------------------------------------

class StateFile:
    """Load/save a CrawlState to a pre-created JSON file."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(self, state: CrawlState) -> bool:
        """Merge the file's contents into state. Returns False on soft failure."""
        if not os.access(self._path, os.F_OK | os.R_OK):
            log.warning(
                "State file %s does not exist or is not readable; starting empty.",
                self._path,
            )
            return False
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            loaded = CrawlState.from_dict(data)
        except (OSError, ValueError) as exc:
            log.warning("State file load failed (%s); starting empty.", exc)
            return False
        state.merge(loaded)
        log.debug(
            "Loaded %d members, %d processed comments from %s",
            len(loaded.members), len(loaded.processed_comment_ids), self._path,
        )
        return True

    def check_access(self) -> None:
        """Raise StateFileError unless the file exists and is readable/writable."""
        if not os.access(self._path, os.F_OK | os.R_OK | os.W_OK):
            raise StateFileError(
                f"{self._path} does not exist or is not readable/writable"
            )

    def save(self, state: CrawlState) -> None:
        self.check_access()
        payload = json.dumps(state.to_dict(), indent=2, ensure_ascii=False)
        target = self._path.resolve()
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{target.name}.", suffix=".tmp", dir=target.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.write("\n")
            shutil.copymode(target, tmp_name)
            os.replace(tmp_name, target)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def create_empty(self) -> None:
        """Create a fresh, empty state file. Refuses to overwrite."""
        if self._path.exists():
            raise StateFileError(f"{self._path} already exists")
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(CrawlState().to_dict(), indent=2) + "\n",
            encoding="utf-8",
        )
