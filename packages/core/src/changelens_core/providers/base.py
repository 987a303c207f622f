"""Base similarity oracle implementing the Template Method pattern.

All providers share the same algorithm:
    are_equivalent() → _build_user_prompt()
                     → _call_with_retry() → _call_api()   ← only this differs per provider
                     → _parse_answer()

Subclasses implement two things only:
  - __init__: validate and store the SDK client
  - _call_api: make one raw API call and return the text response, raising
    TransportError or ProviderError on failure

The oracle is a best-effort second opinion: callers treat any error it
raises as "no evidence", never as a failed check.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

from changelens_core.errors import TransportError

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_MAX_TOKENS = 16

SYSTEM_PROMPT = "You are a helpful assistant that determines if two texts are similar in meaning."


class BaseOracle(ABC):
    MODEL: str = ""
    MAX_RETRIES: int = _MAX_RETRIES
    MAX_TOKENS: int = _MAX_TOKENS
    TEMPERATURE: float = 0.0

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def are_equivalent(self, pr_title: str, changelog_description: str) -> bool:
        """Ask the model whether a PR title and a changelog entry describe the same change.

        Raises TransportError or ProviderError when no answer could be obtained.
        """
        raw = self._call_with_retry(SYSTEM_PROMPT, self._build_user_prompt(pr_title, changelog_description))
        return self._parse_answer(raw)

    def ping(self) -> bool:
        """Check the provider credentials with a minimal request."""
        self._call_api("", "Say TEST")
        return True

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                               #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        """Make a single API call and return the raw text response."""

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _call_with_retry(self, system_prompt: str, user_prompt: str) -> str:
        """Retry transport failures with exponential backoff.

        ProviderError (bad key, refused request, empty answer) is not retried:
        asking again will not change the answer.
        """
        for attempt in range(self.MAX_RETRIES):
            try:
                return self._call_api(system_prompt, user_prompt)
            except TransportError as e:
                if attempt == self.MAX_RETRIES - 1:
                    logger.error(
                        "%s API failed after %d attempts: %s",
                        self.__class__.__name__,
                        self.MAX_RETRIES,
                        e,
                    )
                    raise
                delay = 2**attempt
                logger.warning(
                    "%s API error (attempt %d/%d): %s. Retrying in %ds...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.MAX_RETRIES,
                    e,
                    delay,
                )
                time.sleep(delay)
        raise TransportError(f"{self.__class__.__name__}: no attempts made")

    @staticmethod
    def _build_user_prompt(pr_title: str, changelog_description: str) -> str:
        return (
            f"PR Title: {pr_title}\n"
            f"Changelog Description: {changelog_description}\n\n"
            "Are these two texts describing the same change? Answer only YES or NO."
        )

    @staticmethod
    def _parse_answer(raw: str) -> bool:
        return "YES" in raw.upper()
