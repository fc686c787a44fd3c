"""HTTP API, webhooks and scheduled jobs."""

from finance_tracker.api.app import create_app

__all__ = ["create_app"]
