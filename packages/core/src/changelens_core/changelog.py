"""Changelog parsing: version sections, PR references and entry descriptions.

The changelog is Markdown in the "Keep a Changelog" style used by Cosmos SDK
projects:

    ## [Unreleased]

    ### Bug Fixes

    * (client) [\\#100](https://github.com/o/r/pull/100) Fix bug in client.
    * [\\#101](https://github.com/o/r/pull/101) Bump dependencies.

    ## [v1.2.0] - 2024-03-01

A PR reference is the literal text ``[\\#<number>]`` (backslash-escaped hash).
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from changelens_core.errors import SectionNotFound

logger = logging.getLogger(__name__)

UNRELEASED = "Unreleased"

_SECTION_PREFIX = "## ["
_VERSION_HEADER_RE = re.compile(r"^## \[(v?\d+\.\d+\.\d+)\]")
_PR_REF_RE = re.compile(r"\[\\#(\d+)\]")

# Tried in order; the first pattern that matches supplies the description.
_DESCRIPTION_EXTRACTORS: tuple[tuple[str, re.Pattern[str]], ...] = (
    # * (component) [\#123](url) Description
    ("component", re.compile(r"^\* \([^)]*\) \[\\#\d+\]\([^)]+\) (.+)$")),
    # * [\#123](url) Description
    ("plain", re.compile(r"^\* \[\\#\d+\]\([^)]+\) (.+)$")),
    # anything ... [\#123](url) Description
    ("after-link", re.compile(r"\[\\#\d+\]\([^)]+\) (.+)$")),
)


def read_changelog(path: str | Path) -> str:
    return Path(path).read_text(encoding="utf-8")


def pr_marker(pr_number: int) -> str:
    """Return the literal reference marker for a PR, e.g. ``[\\#123]``."""
    return f"[\\#{pr_number}]"


def resolve_version(text: str) -> str:
    """Pick the section to audit when no version was requested.

    "Unreleased" wins if the changelog has such a header; otherwise the first
    semantic-version header from the top (the latest release) is used.
    """
    lines = text.splitlines()
    if any(line.startswith(f"{_SECTION_PREFIX}{UNRELEASED}]") for line in lines):
        return UNRELEASED
    for line in lines:
        match = _VERSION_HEADER_RE.match(line)
        if match:
            return match.group(1)
    return UNRELEASED


def _header_prefixes(version: str) -> tuple[str, ...]:
    """Return the header prefixes that identify ``version``.

    ``1.2.3`` and ``v1.2.3`` are the same release and match either header form.
    """
    if version == UNRELEASED:
        return (f"{_SECTION_PREFIX}{UNRELEASED}]",)
    bare = version[1:] if version.startswith("v") else version
    return (f"{_SECTION_PREFIX}v{bare}]", f"{_SECTION_PREFIX}{bare}]")


def locate_section(text: str, version: str = "") -> str:
    """Return the text of one release section, header line included.

    The section runs from its ``## [<version>]`` header up to the next line
    starting with ``## [`` or the end of the file.

    Raises SectionNotFound when no header matches or the section has no
    content after the header.
    """
    if not version:
        version = resolve_version(text)
        logger.debug("No version requested, auditing section %r", version)

    prefixes = _header_prefixes(version)
    section_lines: list[str] = []
    in_section = False

    for line in text.splitlines():
        if not in_section:
            if line.startswith(prefixes):
                in_section = True
                section_lines.append(line)
            continue
        if line.startswith(_SECTION_PREFIX):
            break
        section_lines.append(line)

    if not section_lines:
        raise SectionNotFound(f"no section found for {version} in changelog file")
    if not any(line.strip() for line in section_lines[1:]):
        raise SectionNotFound(f"section {version} in changelog file is empty")

    return "\n".join(section_lines)


def extract_pr_numbers(section: str) -> list[int]:
    """Return the unique PR numbers referenced in a section, in first-seen order."""
    _log_entry_stats(section)
    numbers = (int(n) for n in _PR_REF_RE.findall(section))
    return list(dict.fromkeys(numbers))


def _log_entry_stats(section: str) -> None:
    entries = 0
    without_pr = 0
    multi_pr = 0
    for line_no, line in enumerate(section.splitlines(), 1):
        if not line.startswith("*"):
            continue
        entries += 1
        refs = _PR_REF_RE.findall(line)
        if not refs:
            without_pr += 1
            logger.debug("Entry without PR number: %s", line)
        elif len(refs) > 1:
            multi_pr += 1
            logger.debug("Line %d has multiple PR numbers: %s", line_no, line)
    logger.info("Found %d changelog entries, entries without PR: %d", entries, without_pr)
    logger.debug("Lines with multiple PR numbers: %d", multi_pr)


def find_line_for_pr(section: str, pr_number: int) -> str:
    """Return the first line of the section referencing the PR, or ""."""
    marker = pr_marker(pr_number)
    for line in section.splitlines():
        if marker in line:
            return line
    return ""


def description_for_pr(line: str, pr_number: int) -> str:
    """Extract the free-text description that follows the PR link on a line.

    Returns "" when the line does not reference the PR or has no
    ``[\\#N](url)`` link to anchor on.
    """
    if pr_marker(pr_number) not in line:
        return ""
    for name, pattern in _DESCRIPTION_EXTRACTORS:
        match = pattern.search(line)
        if match:
            logger.debug("PR #%d description extracted with %r pattern", pr_number, name)
            return match.group(1)
    return ""


def select_sample(pr_numbers: list[int], limit: int) -> list[int]:
    """Apply the --limit sampling policy.

    A limit of 3 picks the first, middle and last PR, a cheap smoke test that
    touches both ends of the section. Any other limit takes the first N.
    Non-positive limits, or limits covering every PR, select everything.
    """
    if limit <= 0 or limit >= len(pr_numbers):
        return list(pr_numbers)
    if limit == 3:
        middle = len(pr_numbers) // 2
        return [pr_numbers[0], pr_numbers[middle], pr_numbers[-1]]
    return pr_numbers[:limit]
