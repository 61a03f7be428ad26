"""misfit_crawler.config

Run configuration.

Credentials and the subreddit come from the environment (a ``.env`` file in
the working directory is loaded first). Everything else comes from an
optional YAML file:

    subreddit: MisfitCompany          # overrides SUBREDDIT_NAME
    report_flair: AAR
    event_flair: Event
    report_marker: AAR
    user_agent: "MisfitCrawler/1.0 (by /u/someone)"
    excluded_handles:
      - AutoModerator
    identities:
      SomeRedditUser:
        discord_id: "Some Discord#1234"
        aliases: ["Some"]
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import find_dotenv, load_dotenv

from misfit_crawler.aggregator import (
    DEFAULT_EVENT_FLAIR,
    DEFAULT_REPORT_FLAIR,
    DEFAULT_REPORT_MARKER,
)
from misfit_crawler.identity import IdentityHint, parse_identity_map
from misfit_crawler.normalize import trim
from misfit_crawler.reddit_source import DEFAULT_USER_AGENT

KNOWN_CONFIG_KEYS = frozenset({
    "subreddit",
    "report_flair",
    "event_flair",
    "report_marker",
    "user_agent",
    "excluded_handles",
    "identities",
})

_TRUTHY = ("1", "true", "yes", "on")


class ConfigError(ValueError):
    """Raised when the YAML config or required environment is invalid."""


@dataclass
class Settings:
    client_id: str | None = None
    client_secret: str | None = None
    subreddit: str | None = None
    user_agent: str = DEFAULT_USER_AGENT
    report_flair: str = DEFAULT_REPORT_FLAIR
    event_flair: str = DEFAULT_EVENT_FLAIR
    report_marker: str = DEFAULT_REPORT_MARKER
    excluded_handles: list[str] = field(default_factory=list)
    identities: dict[str, IdentityHint] = field(default_factory=dict)
    debug: bool = False

    def require_reddit(self) -> None:
        """Raise ConfigError unless credentials and subreddit are all set."""
        missing = [
            name for name, value in (
                ("client id", self.client_id),
                ("client secret", self.client_secret),
                ("subreddit", self.subreddit),
            )
            if not value
        ]
        if missing:
            raise ConfigError(f"missing Reddit settings: {', '.join(missing)}")


def _read_yaml(path: Path) -> dict[str, Any]:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    unknown = set(data) - KNOWN_CONFIG_KEYS
    if unknown:
        raise ConfigError(f"{path}: unknown keys {sorted(unknown)}")
    return data


def load_settings(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
    client_id_env: str = "CLIENT_ID",
    client_secret_env: str = "CLIENT_SECRET",
    subreddit_env: str = "SUBREDDIT_NAME",
) -> Settings:
    """Build Settings from the environment and an optional YAML file."""
    if environ is None:
        load_dotenv(find_dotenv(usecwd=True))
        environ = os.environ

    settings = Settings(
        client_id=trim(environ.get(client_id_env)),
        client_secret=trim(environ.get(client_secret_env)),
        subreddit=trim(environ.get(subreddit_env)),
        debug=(environ.get("DEBUG") or "").strip().lower() in _TRUTHY,
    )
    if config_path is None:
        return settings

    data = _read_yaml(config_path)
    for key in ("subreddit", "report_flair", "event_flair", "report_marker", "user_agent"):
        value = data.get(key)
        if value is None:
            continue
        if not isinstance(value, str) or not trim(value):
            raise ConfigError(f"{config_path}: {key} must be a non-empty string")
        setattr(settings, key, value.strip())

    excluded = data.get("excluded_handles") or []
    if not isinstance(excluded, list):
        raise ConfigError(f"{config_path}: excluded_handles must be a list")
    settings.excluded_handles = [h for h in (trim(str(x)) for x in excluded) if h]

    settings.identities = parse_identity_map(data.get("identities"))
    return settings
