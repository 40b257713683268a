"""Shared constants used across the application."""

# This file is intended to hold shared constants.

# Timestamps
# ----------

GITHUB_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
"""Format of every timestamp exchanged with the GitHub API (UTC, second precision)."""

# Pagination
# ----------

DEFAULT_PER_PAGE = 100
"""Maximum items per page accepted by the GitHub REST API."""

MAX_EVENT_PAGES = 10
"""The repository events feed never serves more than ten pages."""

# Storage Layout
# --------------

SHARD_SIZE = 100
"""Object numbers per storage bucket."""

ISSUES_DIRECTORY = "issues"
"""Directory (relative to the mirror root) holding issue and pull request data."""

SUMMARY_LIST_FILENAME = "list.json"
"""Summary list of every mirrored issue and pull request."""

STATE_FILENAME = "state.json"
"""State record holding watermarks and per-object freshness tokens."""

COMMENTS_SUFFIX = ".comments.json"
"""Suffix of per-object comment thread files."""

# Rate Limiting
# -------------

DEFAULT_RATE_LIMIT_SAFETY_MARGIN = 5.0
"""Seconds to wait past the advertised reset time before resuming requests."""
