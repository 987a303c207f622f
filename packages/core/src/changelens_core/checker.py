"""Core changelog reconciliation."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from changelens_core.cache import safe_lookup, safe_populate
from changelens_core.changelog import (
    description_for_pr,
    extract_pr_numbers,
    find_line_for_pr,
    locate_section,
    read_changelog,
    select_sample,
)
from changelens_core.errors import (
    DescriptionExtractionFailed,
    NoPRNumbersFound,
    PRNotFoundInSection,
    TitleLookupFailed,
)
from changelens_core.models import PRResult, Verdict
from changelens_core.providers.anthropic import AnthropicOracle
from changelens_core.providers.openai import OpenAIOracle
from changelens_core.similarity import check_similarity
from changelens_store.noop import NoOpCacheStore

if TYPE_CHECKING:
    from changelens_core.gh.pull_request import PullRequestClient
    from changelens_core.providers.base import BaseOracle
    from changelens_store.base import BaseCacheStore

logger = logging.getLogger(__name__)


def build_oracle(config: dict) -> BaseOracle | None:
    """Return the configured similarity oracle, or None when disabled."""
    oracle = config.get("oracle") or "none"
    model = config.get("oracle_model")
    timeout = config.get("timeout", 10)
    if oracle == "none":
        return None
    if oracle == "openai":
        return OpenAIOracle(api_key=config["openai_api_key"], model=model, timeout=timeout)
    if oracle == "anthropic":
        return AnthropicOracle(api_key=config["anthropic_api_key"], model=model, timeout=timeout)
    raise ValueError(f"Unknown oracle: {oracle!r}. Choose 'none', 'openai' or 'anthropic'.")


class ChangelogChecker:
    """Checks changelog entries of one repository against their PR titles.

    Per PR the check walks four steps, any of which may end it early with a
    NOT_FOUND verdict:

        locate line → extract description → cached verdict? → fetch title + compare

    A failure only ever affects its own PR; the batch always returns one
    PRResult per selected PR.
    """

    def __init__(
        self,
        pr_client: PullRequestClient,
        owner: str,
        repo: str,
        oracle: BaseOracle | None = None,
        store: BaseCacheStore | None = None,
    ):
        self.pr_client = pr_client
        self.owner = owner
        self.repo = repo
        self.oracle = oracle
        self.store = store if store is not None else NoOpCacheStore()

    def check_changelog(self, changelog_path: str | Path, version: str = "", limit: int = 0) -> list[PRResult]:
        """Check the PRs of one section of a changelog file.

        Raises SectionNotFound or NoPRNumbersFound when there is nothing to check.
        """
        return self.check_text(read_changelog(changelog_path), version=version, limit=limit)

    def check_text(self, text: str, version: str = "", limit: int = 0) -> list[PRResult]:
        """Same as check_changelog, on changelog content already in memory."""
        section = locate_section(text, version)

        pr_numbers = extract_pr_numbers(section)
        if not pr_numbers:
            raise NoPRNumbersFound("no PR numbers found in the changelog section")
        logger.info("Found %d unique PR numbers in the changelog section", len(pr_numbers))
        logger.debug("PR numbers: %s", pr_numbers)

        selected = select_sample(pr_numbers, limit)
        if len(selected) < len(pr_numbers):
            logger.info("Limiting to %d of %d PRs", len(selected), len(pr_numbers))

        return [self.check_pr(pr_number, section) for pr_number in selected]

    def check_pr(self, pr_number: int, section: str) -> PRResult:
        line = find_line_for_pr(section, pr_number)
        if not line:
            return self._not_found(pr_number, "", PRNotFoundInSection(pr_number))

        description = description_for_pr(line, pr_number)
        if not description:
            return self._not_found(pr_number, "", DescriptionExtractionFailed(pr_number))

        cached = self._cached_verdict(pr_number, description)
        if cached is not None:
            logger.debug("Using cached verdict for PR #%d", pr_number)
            # The title is only for display here; losing it does not change the verdict.
            try:
                title = self.pr_client.get_title(self.owner, self.repo, pr_number)
            except TitleLookupFailed as e:
                return PRResult(pr_number, description, "", cached, error=e)
            return PRResult(pr_number, description, title, cached)

        try:
            title = self.pr_client.get_title(self.owner, self.repo, pr_number)
        except TitleLookupFailed as e:
            return self._not_found(pr_number, description, e)

        verdict = check_similarity(description, title, self.oracle)
        safe_populate(
            lambda: self.store.put_verdict(self.owner, self.repo, pr_number, description, int(verdict)),
            f"verdict for PR #{pr_number}",
        )
        return PRResult(pr_number, description, title, verdict)

    def _cached_verdict(self, pr_number: int, description: str) -> Verdict | None:
        code = safe_lookup(
            lambda: self.store.get_verdict(self.owner, self.repo, pr_number, description),
            f"verdict for PR #{pr_number}",
        )
        if code is None:
            return None
        verdict = Verdict.from_code(code)
        if verdict is None:
            logger.warning("Ignoring cached verdict with unknown code %r for PR #%d", code, pr_number)
        return verdict

    @staticmethod
    def _not_found(pr_number: int, description: str, error: Exception) -> PRResult:
        logger.debug("PR #%d: %s", pr_number, error)
        return PRResult(pr_number, description, "", Verdict.NOT_FOUND, error=error)
