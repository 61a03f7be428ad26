"""Unit tests for the PRAW adapter (misfit_crawler.reddit_source).

PRAW objects are replaced with MagicMock; no network access required.
"""

from __future__ import annotations

from unittest.mock import MagicMock

from misfit_crawler.reddit_source import (
    RedditSource,
    comment_from_praw,
    submission_from_praw,
)
from misfit_crawler.shared import Submission


def _author(name):
    a = MagicMock()
    a.name = name
    return a


def _post(pid="p1", author="Zeus", selftext_html="&lt;div class=&quot;md&quot;&gt;&lt;p&gt;hi&lt;/p&gt;&lt;/div&gt;"):
    post = MagicMock()
    post.id = pid
    post.title = "AAR: Op"
    post.link_flair_text = "AAR"
    post.author = _author(author) if author else None
    post.created_utc = 1_700_000_000
    post.num_comments = 2
    post.selftext_html = selftext_html
    return post


class TestConverters:
    def test_submission_unescapes_body(self):
        sub = submission_from_praw(_post())
        assert sub.body_html == '<div class="md"><p>hi</p></div>'
        assert sub.author == "Zeus"
        assert sub.flair == "AAR"
        assert sub.created_utc == 1_700_000_000.0

    def test_submission_link_post_has_empty_body(self):
        assert submission_from_praw(_post(selftext_html=None)).body_html == ""

    def test_deleted_author_is_none(self):
        assert submission_from_praw(_post(author=None)).author is None

    def test_comment(self):
        c = MagicMock()
        c.id = "c1"
        c.author = _author("Rookie")
        c.body = "Great op"
        comment = comment_from_praw(c)
        assert (comment.id, comment.author, comment.body) == ("c1", "Rookie", "Great op")


class TestRedditSource:
    def test_search_uses_flair_query_and_window(self):
        reddit = MagicMock()
        subreddit = reddit.subreddit.return_value
        subreddit.search.return_value = [_post("p1"), _post("p2")]
        source = RedditSource(reddit, "MisfitCompany")

        results = list(source.search("AAR", "decade"))

        reddit.subreddit.assert_called_once_with("MisfitCompany")
        subreddit.search.assert_called_once_with(
            'flair:"AAR"', sort="new", time_filter="month", limit=None
        )
        assert [s.id for s in results] == ["p1", "p2"]

    def test_top_level_comments_expand_more(self):
        reddit = MagicMock()
        post = _post("p1")
        c1, c2 = MagicMock(), MagicMock()
        c1.id, c1.author, c1.body = "c1", _author("A"), "x"
        c2.id, c2.author, c2.body = "c2", None, "[deleted]"
        post.comments.__iter__.return_value = iter([c1, c2])
        reddit.subreddit.return_value.search.return_value = [post]
        source = RedditSource(reddit, "sub")

        sub = next(iter(source.search("AAR", "week")))
        comments = source.top_level_comments(sub)

        post.comments.replace_more.assert_called_once_with(limit=None)
        assert [(c.id, c.author) for c in comments] == [("c1", "A"), ("c2", None)]
        reddit.submission.assert_not_called()

    def test_unknown_submission_fetched_by_id(self):
        reddit = MagicMock()
        post = reddit.submission.return_value
        post.comments.__iter__.return_value = iter([])
        source = RedditSource(reddit, "sub")
        sub = Submission(id="zz", title="AAR", flair=None, author=None,
                         created_utc=0.0, num_comments=1)
        assert source.top_level_comments(sub) == []
        reddit.submission.assert_called_once_with(id="zz")
