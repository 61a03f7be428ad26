"""misfit_crawler.aggregator

Activity aggregation over a subreddit feed.

Report flow (process_reports), per submission returned for the report flair:
  1.  Skip unless the title contains the report marker ("AAR").
  2.  Count the submission as processed; skip comment fetch if it has none.
  3.  For each top-level comment, skip:
        a. deleted authors
        b. the submission's own author
        c. excluded handles
        d. comment ids already in the ledger
      otherwise resolve-or-create the author by exact handle, bump
      report_count and add the comment id to the ledger.

Sign-up flow (process_signups), per submission returned for the event flair:
  1.  Extract roster slots from the body HTML.
  2.  Resolve each player name by alias; bump signup_count on a match,
      otherwise record the raw name for manual review.

The sign-up flow keeps no ledger: scanning the same window twice counts
its sign-ups twice. Source errors are not caught here.
"""

from __future__ import annotations

import logging
from typing import Iterable, Protocol

from misfit_crawler.crawl_state import CrawlState
from misfit_crawler.identity import IdentityStore
from misfit_crawler.normalize import normalize_handle, normalize_timeframe
from misfit_crawler.shared import Comment, RunCounters, Submission
from misfit_crawler.signup_table import extract_signup_slots

log = logging.getLogger(__name__)

DEFAULT_REPORT_FLAIR = "AAR"
DEFAULT_EVENT_FLAIR = "Event"
DEFAULT_REPORT_MARKER = "AAR"


# ---------------------------------------------------------------------------
# Feed source protocol
# ---------------------------------------------------------------------------

class FeedSource(Protocol):
    def search(self, category: str, timeframe: str) -> Iterable[Submission]:
        """Return submissions in the given category/flair within the window."""
        ...

    def top_level_comments(self, submission: Submission) -> Iterable[Comment]:
        """Return the submission's depth-1 comments, in feed order."""
        ...


# ---------------------------------------------------------------------------
# ActivityAggregator
# ---------------------------------------------------------------------------

class ActivityAggregator:
    def __init__(
        self,
        state: CrawlState,
        source: FeedSource,
        identities: IdentityStore | None = None,
        counters: RunCounters | None = None,
        report_flair: str = DEFAULT_REPORT_FLAIR,
        event_flair: str = DEFAULT_EVENT_FLAIR,
        report_marker: str = DEFAULT_REPORT_MARKER,
    ) -> None:
        self.state = state
        self.source = source
        self.identities = identities if identities is not None else IdentityStore(state.members)
        self.counters = counters if counters is not None else RunCounters()
        self.report_flair = report_flair
        self.event_flair = event_flair
        self.report_marker = report_marker

    # -- report flow ------------------------------------------------------

    def process_reports(self, timeframe: str | None = None) -> int:
        """Count AAR comments in the window. Returns qualifying submissions."""
        window = normalize_timeframe(timeframe)
        processed = 0

        for submission in self.source.search(self.report_flair, window):
            self.counters.report_submissions_seen += 1
            if self.report_marker not in (submission.title or ""):
                self.counters.report_submissions_skipped_marker += 1
                continue

            log.debug("%s (%s)", submission.title, submission.created_at.date().isoformat())
            processed += 1
            self.counters.report_submissions_processed += 1

            if submission.num_comments < 1:
                continue

            for comment in self.source.top_level_comments(submission):
                self._count_report_comment(submission, comment)

        return processed

    def _count_report_comment(self, submission: Submission, comment: Comment) -> None:
        self.counters.comments_read += 1
        author_key = normalize_handle(comment.author)

        if author_key is None:
            self.counters.comments_skipped_deleted += 1
            return
        if author_key == normalize_handle(submission.author):
            self.counters.comments_skipped_self += 1
            return
        if self.state.is_excluded(comment.author):
            self.counters.comments_skipped_excluded += 1
            return
        if self.state.is_processed(comment.id):
            self.counters.comments_skipped_duplicate += 1
            return

        member, created = self.identities.get_or_create(comment.author)  # type: ignore[arg-type]
        if created:
            self.counters.members_created += 1
        member.increment_report_count()
        self.state.mark_processed(comment.id)
        self.counters.comments_counted += 1

    # -- sign-up flow -----------------------------------------------------

    def process_signups(self, timeframe: str | None = None) -> int:
        """Count roster sign-ups in the window. Returns submissions processed."""
        window = normalize_timeframe(timeframe)
        processed = 0

        for submission in self.source.search(self.event_flair, window):
            log.debug("%s (%s)", submission.title, submission.created_at.date().isoformat())
            processed += 1
            self.counters.event_submissions_processed += 1

            slots = extract_signup_slots(submission.body_html)
            if not slots:
                self.counters.event_submissions_without_roster += 1
                continue
            self.counters.slots_extracted += len(slots)

            for slot in slots:
                member = self.identities.resolve(slot.player_name)
                if member is not None:
                    member.increment_signup_count()
                    self.counters.signups_counted += 1
                    continue
                self.counters.names_unresolved += 1
                if self.state.record_unresolved(slot.player_name):
                    self.counters.names_unresolved_new += 1
                    log.debug("Unresolved sign-up name %r (%s)", slot.player_name, slot.role)

        return processed
