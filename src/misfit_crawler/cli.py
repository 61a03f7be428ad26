"""misfit_crawler.cli

Command-line entrypoint.

Commands:
  report [TIMEFRAME]   count AAR comments posted in the window
  signup [TIMEFRAME]   count roster sign-ups in event posts in the window
  rank                 print the leaderboard from the saved state (read-only)
  unknown              print sign-up names that matched no member
  init-state           create an empty state file

TIMEFRAME is one of hour, day, week, month, year, all (default: month).

Usage:
    misfit-crawler --state-path data.json --config crawler.yml report week
    misfit-crawler --state-path data.json rank --by signup

Exit codes: 0 success, 1 no command / fatal run error, 2 usage error.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from datetime import datetime
from pathlib import Path

import click

from misfit_crawler.aggregator import ActivityAggregator, FeedSource
from misfit_crawler.config import ConfigError, Settings, load_settings
from misfit_crawler.crawl_state import CrawlState, StateFile
from misfit_crawler.identity import IdentityStore, load_identity_map
from misfit_crawler.normalize import VALID_TIMEFRAMES, normalize_timeframe
from misfit_crawler.ranking import RANK_FIELDS, format_ranking, rank_members
from misfit_crawler.shared import IdentityMapError, RunCounters, StateFileError, write_run_report


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_source(settings: Settings) -> FeedSource:
    from misfit_crawler.reddit_source import RedditSource, build_reddit

    reddit = build_reddit(
        settings.client_id,  # type: ignore[arg-type]
        settings.client_secret,  # type: ignore[arg-type]
        user_agent=settings.user_agent,
    )
    return RedditSource(reddit, settings.subreddit)  # type: ignore[arg-type]


def _load_state(state_file: StateFile, run_id: str) -> CrawlState:
    state = CrawlState()
    if state_file.load(state):
        click.echo(
            f"[{run_id}] State loaded: {len(state.members)} members, "
            f"{len(state.processed_comment_ids)} processed comments"
        )
    else:
        click.echo(f"[{run_id}] WARNING: could not load {state_file.path}; starting empty.", err=True)
    return state


def _resolve_timeframe(timeframe: str | None, run_id: str) -> str:
    window = normalize_timeframe(timeframe)
    if timeframe is not None and timeframe.strip().lower() != window:
        click.echo(
            f"[{run_id}] WARNING: unknown timeframe {timeframe!r}; using {window!r} "
            f"(valid: {', '.join(VALID_TIMEFRAMES)})",
            err=True,
        )
    return window


def _run_flow(ctx: click.Context, command: str, timeframe: str | None) -> None:
    obj = ctx.obj
    settings: Settings = obj["settings"]
    run_id: str = obj["run_id"]
    state_file: StateFile = obj["state_file"]
    started_at = datetime.utcnow().isoformat()

    try:
        settings.require_reddit()
    except ConfigError as exc:
        click.echo(f"[{run_id}] FATAL: {exc}", err=True)
        sys.exit(1)

    window = _resolve_timeframe(timeframe, run_id)
    state = _load_state(state_file, run_id)
    state.excluded_handles |= set(settings.excluded_handles)
    identities = IdentityStore(state.members, settings.identities)

    counters = RunCounters()
    aggregator = ActivityAggregator(
        state,
        _build_source(settings),
        identities=identities,
        counters=counters,
        report_flair=settings.report_flair,
        event_flair=settings.event_flair,
        report_marker=settings.report_marker,
    )

    if command == "report":
        click.echo(f"[{run_id}] Processing AARs (timeframe={window})…")
        processed = aggregator.process_reports(window)
    else:
        click.echo(f"[{run_id}] Processing sign-ups (timeframe={window})…")
        processed = aggregator.process_signups(window)
    click.echo(f"Processed: {processed}")

    try:
        state_file.save(state)
    except StateFileError as exc:
        click.echo(f"[{run_id}] FATAL: {exc}", err=True)
        sys.exit(1)

    report_path = write_run_report(
        run_id, started_at, command, window,
        str(state_file.path), counters, report_dir=obj["report_dir"],
    )
    click.echo(f"[{run_id}] Run report: {report_path}")
    click.echo(json.dumps(counters.to_dict(), indent=2, default=str))
    click.echo("OK")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

@click.group(invoke_without_command=True)
@click.option(
    "--state-path",
    default="./data.json",
    show_default=True,
    type=click.Path(dir_okay=False),
    help="JSON state file (must exist for report/signup to save)",
)
@click.option("--config", "config_path", default=None, type=click.Path(exists=True, dir_okay=False), help="YAML config file")
@click.option("--identity-map", default=None, type=click.Path(exists=True, dir_okay=False), help="YAML handle → discord id / aliases map")
@click.option("--client-id-env", default="CLIENT_ID", show_default=True, help="Env var name holding the Reddit client id")
@click.option("--client-secret-env", default="CLIENT_SECRET", show_default=True, help="Env var name holding the Reddit client secret")
@click.option("--subreddit-env", default="SUBREDDIT_NAME", show_default=True, help="Env var name holding the subreddit name")
@click.option("--report-dir", default="./artifacts/reports", show_default=True, type=click.Path(file_okay=False))
@click.option("--run-id", default=None, help="Override UUID for log correlation")
@click.option("--debug/--no-debug", default=None, help="Verbose logging (default: DEBUG env var)")
@click.pass_context
def main(
    ctx: click.Context,
    state_path: str,
    config_path: str | None,
    identity_map: str | None,
    client_id_env: str,
    client_secret_env: str,
    subreddit_env: str,
    report_dir: str,
    run_id: str | None,
    debug: bool | None,
) -> None:
    """Misfit community activity crawler."""
    if ctx.invoked_subcommand is None:
        click.echo("I don't know what to do.", err=True)
        click.echo(ctx.get_help(), err=True)
        ctx.exit(1)

    run_id = run_id or str(uuid.uuid4())
    try:
        settings = load_settings(
            Path(config_path) if config_path else None,
            client_id_env=client_id_env,
            client_secret_env=client_secret_env,
            subreddit_env=subreddit_env,
        )
        if identity_map:
            settings.identities.update(load_identity_map(Path(identity_map)))
    except (ConfigError, IdentityMapError) as exc:
        click.echo(f"[{run_id}] FATAL: {exc}", err=True)
        sys.exit(1)

    if debug is not None:
        settings.debug = debug
    _configure_logging(settings.debug)

    ctx.obj = {
        "run_id": run_id,
        "settings": settings,
        "state_file": StateFile(Path(state_path)),
        "report_dir": Path(report_dir),
    }


@main.command()
@click.argument("timeframe", required=False, default=None)
@click.pass_context
def report(ctx: click.Context, timeframe: str | None) -> None:
    """Count AAR comments posted in TIMEFRAME."""
    _run_flow(ctx, "report", timeframe)


@main.command()
@click.argument("timeframe", required=False, default=None)
@click.pass_context
def signup(ctx: click.Context, timeframe: str | None) -> None:
    """Count roster sign-ups in event posts from TIMEFRAME."""
    _run_flow(ctx, "signup", timeframe)


@main.command()
@click.option("--by", type=click.Choice(sorted(RANK_FIELDS)), default="report", show_default=True)
@click.option("--limit", type=int, default=None, help="Show only the top N members")
@click.option("--hide-zero", is_flag=True, default=False, help="Omit members whose count is zero")
@click.pass_context
def rank(ctx: click.Context, by: str, limit: int | None, hide_zero: bool) -> None:
    """Print members ranked by AAR or sign-up count."""
    state = CrawlState()
    ctx.obj["state_file"].load(state)
    ranked = rank_members(state.members, by=by, include_zero=not hide_zero)
    if limit is not None:
        ranked = ranked[:limit]
    if not ranked:
        click.echo("No members to rank.")
        return
    for line in format_ranking(ranked, by=by):
        click.echo(line)


@main.command()
@click.pass_context
def unknown(ctx: click.Context) -> None:
    """Print sign-up names that could not be matched to a member."""
    state = CrawlState()
    ctx.obj["state_file"].load(state)
    for name in sorted(state.unresolved_names, key=str.lower):
        click.echo(name)


@main.command("init-state")
@click.pass_context
def init_state(ctx: click.Context) -> None:
    """Create an empty state file at --state-path."""
    state_file: StateFile = ctx.obj["state_file"]
    try:
        state_file.create_empty()
    except StateFileError as exc:
        click.echo(f"FATAL: {exc}", err=True)
        sys.exit(1)
    click.echo(f"Created {state_file.path}")


if __name__ == "__main__":
    main()
