"""
Squash-merge reference extraction.

GitHub's "squash and merge" writes the original PR number into the subject
line of the resulting commit, e.g. ``Add retry support (#1234)``. Merge
commits carry it at the end, e.g. ``Merge pull request #1234``. Only the
subject line is inspected: commit bodies routinely mention ``#123`` in prose.
"""

from __future__ import annotations

import re


# "(#123)" anywhere on the line, or " #123" as the last token.
REFERENCE_PATTERN = re.compile(r"\(#([0-9]+)\)|(?<=\s)#([0-9]+)\s*$")


def first_line(message: str | None) -> str:
    """Return the subject line of a commit message."""
    lines = (message or "").splitlines()
    return lines[0] if lines else ""


def extract_reference(message: str | None) -> int | None:
    """
    Extract the PR number a squash/merge commit points at.

    Args:
        message: Full commit message

    Returns:
        The referenced PR number, or None if the subject line carries no
        parenthesized or trailing ``#number`` token. When several tokens
        qualify, the leftmost one wins.
    """
    for match in REFERENCE_PATTERN.finditer(first_line(message)):
        number = int(match.group(1) or match.group(2))
        if number > 0:
            return number
    return None
