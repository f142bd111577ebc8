"""
Per-author commit attribution for a PR closure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping


class AttributionAggregator:
    """Counts terminal commits per author login.

    Strictly additive: every recorded commit adds exactly one to exactly one
    author. Logins are used verbatim (case-sensitive, no alias resolution).
    """

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}

    def record(self, author_login: str) -> None:
        self._counts[author_login] = self._counts.get(author_login, 0) + 1

    def snapshot(self) -> dict[str, int]:
        """Return a copy of the current author -> count table."""
        return dict(self._counts)

    @property
    def total(self) -> int:
        return sum(self._counts.values())


@dataclass(frozen=True)
class SkippedPR:
    """A branch of the closure that could not be traversed."""
    pr: int
    reason: str
    page: int | None = None  # None when the PR was never fetched

    def describe(self) -> str:
        where = f" (page {self.page})" if self.page is not None else ""
        return f"PR #{self.pr}{where}: {self.reason}"


@dataclass(frozen=True)
class TraversalResult:
    """Outcome of one traversal. The attribution table is read-only."""
    attribution: Mapping[str, int]
    visited_prs: tuple[int, ...]
    skipped: tuple[SkippedPR, ...] = field(default_factory=tuple)
    complete: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "attribution", MappingProxyType(dict(self.attribution)))

    @property
    def total_commits(self) -> int:
        return sum(self.attribution.values())

    @property
    def warnings(self) -> list[str]:
        return [s.describe() for s in self.skipped]

    def to_dict(self) -> dict[str, Any]:
        return {
            "attribution": dict(self.attribution),
            "total_commits": self.total_commits,
            "visited_prs": list(self.visited_prs),
            "skipped": [
                {"pr": s.pr, "page": s.page, "reason": s.reason}
                for s in self.skipped
            ],
            "complete": self.complete,
        }
