"""misfit_crawler.reddit_source

PRAW-backed FeedSource.

Uses application-only (client credentials) auth, so it only reads public
content. Submissions are searched by flair within a time window; comments
are expanded fully and only the top-level forest is returned.
"""

from __future__ import annotations

import html
import logging
from typing import Any, Iterator

import praw

from misfit_crawler import __version__
from misfit_crawler.normalize import normalize_timeframe, trim
from misfit_crawler.shared import Comment, Submission

log = logging.getLogger(__name__)

DEFAULT_USER_AGENT = f"MisfitCrawler/{__version__}"


def build_reddit(client_id: str, client_secret: str, user_agent: str = DEFAULT_USER_AGENT) -> praw.Reddit:
    reddit = praw.Reddit(
        client_id=client_id,
        client_secret=client_secret,
        user_agent=user_agent,
    )
    reddit.read_only = True
    return reddit


def _author_name(thing: Any) -> str | None:
    author = getattr(thing, "author", None)
    if author is None:
        return None
    return trim(getattr(author, "name", None))


def submission_from_praw(post: Any) -> Submission:
    body = getattr(post, "selftext_html", None) or ""
    return Submission(
        id=post.id,
        title=post.title or "",
        flair=getattr(post, "link_flair_text", None),
        author=_author_name(post),
        created_utc=float(post.created_utc),
        num_comments=int(post.num_comments or 0),
        # The API returns selftext_html entity-escaped.
        body_html=html.unescape(body),
    )


def comment_from_praw(comment: Any) -> Comment:
    return Comment(
        id=comment.id,
        author=_author_name(comment),
        body=getattr(comment, "body", "") or "",
    )


class RedditSource:
    """FeedSource over one subreddit."""

    def __init__(self, reddit: praw.Reddit, subreddit_name: str) -> None:
        self._reddit = reddit
        self._subreddit_name = subreddit_name
        self._subreddit = None
        self._posts: dict[str, Any] = {}

    def _get_subreddit(self):
        if self._subreddit is None:
            self._subreddit = self._reddit.subreddit(self._subreddit_name)
        return self._subreddit

    def search(self, category: str, timeframe: str) -> Iterator[Submission]:
        window = normalize_timeframe(timeframe)
        query = f'flair:"{category}"'
        log.debug("Searching r/%s for %s (time_filter=%s)", self._subreddit_name, query, window)
        for post in self._get_subreddit().search(
            query, sort="new", time_filter=window, limit=None
        ):
            self._posts[post.id] = post
            yield submission_from_praw(post)

    def top_level_comments(self, submission: Submission) -> list[Comment]:
        post = self._posts.get(submission.id)
        if post is None:
            post = self._reddit.submission(id=submission.id)
        post.comments.replace_more(limit=None)
        # Iterating a CommentForest yields depth-1 comments only.
        return [comment_from_praw(c) for c in post.comments]
