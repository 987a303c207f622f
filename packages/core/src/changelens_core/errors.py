"""Exception hierarchy for changelog reconciliation.

Batch-level errors (SectionNotFound, NoPRNumbersFound) abort a whole run.
Everything else is scoped to one PR and ends up attached to its PRResult.
"""

from __future__ import annotations

from datetime import datetime


class ChangelensError(Exception):
    """Root of all changelens errors."""


class SectionNotFound(ChangelensError):
    """No changelog section matches the requested version."""


class NoPRNumbersFound(ChangelensError):
    """The changelog section references no PRs."""


class PRNotFoundInSection(ChangelensError):
    def __init__(self, pr_number: int):
        super().__init__(f"PR #{pr_number} not found in changelog section")
        self.pr_number = pr_number


class DescriptionExtractionFailed(ChangelensError):
    def __init__(self, pr_number: int):
        super().__init__(f"couldn't extract description for PR #{pr_number}")
        self.pr_number = pr_number


class TransportError(ChangelensError):
    """The remote service could not be reached or answered garbage."""


class ProviderError(ChangelensError):
    """The LLM provider rejected the request or returned an unusable answer."""


class TitleLookupFailed(ChangelensError):
    """Fetching a PR title from GitHub failed."""


class PRNotFound(TitleLookupFailed):
    def __init__(self, owner: str, repo: str, pr_number: int):
        super().__init__(f"PR #{pr_number} not found in {owner}/{repo}")
        self.pr_number = pr_number


class RateLimited(TitleLookupFailed):
    """GitHub refused the request; all lookups fail until ``reset_at``."""

    def __init__(self, reset_at: datetime | None = None):
        if reset_at is None:
            message = "rate limited by GitHub API"
        else:
            message = f"rate limited until {reset_at.isoformat()}"
        super().__init__(message)
        self.reset_at = reset_at


class TitleTransportError(TitleLookupFailed, TransportError):
    """GitHub returned an unexpected status or payload."""
