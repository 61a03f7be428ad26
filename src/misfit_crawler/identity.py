"""misfit_crawler.identity

Identity store: resolves comment authors and sign-up names to Members.

Two lookups with different trust levels:
  - lookup_by_handle: exact (trim + lowercase) match on the primary handle.
    Used for comment authors, whose handle is authoritative.
  - resolve: alias containment. A sign-up name matches the first member
    (collection order) having any alias that appears inside the name once
    both are trimmed and lowercased. No scoring, first match wins.

The handle → (secondary handle, aliases) identity map is an explicit
constructor input, normally loaded from YAML with load_identity_map().

Identity map YAML shape:

    identities:
      SomeRedditUser:
        discord_id: "Some Discord#1234"
        aliases: ["Some", "SDU"]
      OtherUser:
        aliases: ["Other"]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from misfit_crawler.normalize import normalize_alias, normalize_handle, trim
from misfit_crawler.shared import DuplicateMemberError, IdentityMapError, Member

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Identity map
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IdentityHint:
    secondary_handle: str | None = None
    aliases: tuple[str, ...] = field(default_factory=tuple)


def parse_identity_map(data: Any) -> dict[str, IdentityHint]:
    """Validate a parsed identity-map mapping and return handle → IdentityHint.

    Accepts either {handle: {...}} or {handle: "secondary id"} entries.

    Raises:
        IdentityMapError: If the structure or any entry is invalid.
    """
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise IdentityMapError("identities must be a mapping of handle → entry")

    result: dict[str, IdentityHint] = {}
    seen: set[str] = set()
    for raw_handle, entry in data.items():
        if not isinstance(raw_handle, str):
            # YAML turns unquoted yes/no/on/off/null/123 into non-strings.
            raise IdentityMapError(
                f"identity handle {raw_handle!r} is not a string; quote it in the YAML"
            )
        handle = trim(raw_handle)
        if handle is None:
            raise IdentityMapError("identity entry with empty handle")
        key = normalize_handle(handle)
        if key in seen:
            raise IdentityMapError(f"duplicate handle in identity map: {handle!r}")
        seen.add(key)  # type: ignore[arg-type]

        if entry is None:
            result[handle] = IdentityHint()
            continue
        if isinstance(entry, str):
            result[handle] = IdentityHint(secondary_handle=trim(entry))
            continue
        if not isinstance(entry, dict):
            raise IdentityMapError(f"identity entry for {handle!r} must be a mapping or string")

        secondary = entry.get("discord_id")
        if secondary is not None and not isinstance(secondary, str):
            raise IdentityMapError(f"discord_id for {handle!r} must be a string")
        aliases = entry.get("aliases") or []
        if isinstance(aliases, str):
            aliases = [aliases]
        if not isinstance(aliases, list):
            raise IdentityMapError(f"aliases for {handle!r} must be a list")
        result[handle] = IdentityHint(
            secondary_handle=trim(secondary),
            aliases=tuple(a for a in (trim(str(x)) for x in aliases) if a),
        )
    return result


def load_identity_map(yaml_path: Path) -> dict[str, IdentityHint]:
    """Load the identity map from a YAML file.

    The file may hold the mapping at top level or under an ``identities`` key.

    Raises:
        IdentityMapError: If the YAML does not match the expected shape.
        FileNotFoundError: If the file does not exist.
    """
    raw = yaml_path.read_text(encoding="utf-8")
    data = yaml.safe_load(raw)
    if isinstance(data, dict) and "identities" in data:
        data = data["identities"]
    return parse_identity_map(data)


# ---------------------------------------------------------------------------
# IdentityStore
# ---------------------------------------------------------------------------

class IdentityStore:
    """Member table keyed by handle, sharing the caller's member list."""

    def __init__(
        self,
        members: list[Member],
        identity_map: dict[str, IdentityHint] | None = None,
    ) -> None:
        self._members = members
        self._by_handle: dict[str, Member] = {}
        self._identity_map: dict[str, IdentityHint] = {}

        for member in members:
            key = member.handle_key
            if key is None:
                continue
            if key in self._by_handle:
                raise DuplicateMemberError(f"duplicate member handle: {member.handle!r}")
            self._by_handle[key] = member

        for handle, hint in (identity_map or {}).items():
            self._identity_map[normalize_handle(handle)] = hint  # type: ignore[index]
            member = self._by_handle.get(normalize_handle(handle))  # type: ignore[arg-type]
            if member is None:
                self._create(handle)
            else:
                self._apply_hint(member, hint)

    # -- lookups ----------------------------------------------------------

    def lookup_by_handle(self, handle: str | None) -> Member | None:
        key = normalize_handle(handle)
        if key is None:
            return None
        return self._by_handle.get(key)

    def resolve(self, free_text: str | None) -> Member | None:
        text_norm = normalize_alias(free_text)
        if text_norm is None:
            return None
        for member in self._members:
            if member.matches_text(text_norm):
                return member
        return None

    # -- mutation ---------------------------------------------------------

    def add(self, member: Member) -> Member:
        key = member.handle_key
        if key is None:
            raise ValueError("member handle must not be empty")
        if key in self._by_handle:
            raise DuplicateMemberError(f"duplicate member handle: {member.handle!r}")
        self._members.append(member)
        self._by_handle[key] = member
        return member

    def get_or_create(self, handle: str) -> tuple[Member, bool]:
        """Return (member, created) for an exact handle, creating it if absent."""
        member = self.lookup_by_handle(handle)
        if member is not None:
            return member, False
        return self._create(handle), True

    def _create(self, handle: str) -> Member:
        clean = trim(handle)
        hint = self._identity_map.get(normalize_handle(clean))  # type: ignore[arg-type]
        member = Member(handle=clean)
        if hint is not None:
            self._apply_hint(member, hint)
        log.debug("New member %s", clean)
        return self.add(member)

    @staticmethod
    def _apply_hint(member: Member, hint: IdentityHint) -> None:
        if not member.secondary_handle and hint.secondary_handle:
            member.secondary_handle = hint.secondary_handle
        for alias in hint.aliases:
            member.add_alias(alias)
