"""misfit_crawler: community activity crawler (AAR comments + sign-up rosters)."""

__version__ = "1.0.0"
