"""
PR closure traversal.

Starting from one pull request, walks every PR reachable through squash-merge
references in commit subject lines and counts the remaining (terminal)
commits per author.

The walk is breadth-first over an explicit FIFO queue. A PR is fetched at
most once per traversal: references are only enqueued when the PR is neither
processed nor already waiting in the queue, which also makes circular
references (A cites B, B cites A) terminate.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from typing import Callable, Protocol

from .attribution import AttributionAggregator, SkippedPR, TraversalResult
from .config import RetryConfig, TraversalConfig
from .github import (
    Commit,
    GitHubAPIError,
    RateLimitError,
    TransientNetworkError,
)
from .references import extract_reference

logger = logging.getLogger(__name__)


class CommitSource(Protocol):
    """Anything that can serve a PR's commits page by page."""

    def fetch_commits_page(self, owner: str, repo: str, pr: int, page: int) -> list[Commit]:
        ...


class TraversalError(Exception):
    """Fatal traversal failure."""


class InvalidInputError(TraversalError, ValueError):
    """Owner, repo or PR number rejected before any request was made."""


class RootPRError(TraversalError):
    """The starting PR could not be fetched."""
    def __init__(self, pr: int, page: int, cause: GitHubAPIError):
        super().__init__(f"Cannot fetch PR #{pr} (page {page}): {cause}")
        self.pr = pr
        self.page = page
        self.cause = cause


class RateLimitExceededError(TraversalError):
    """Rate limit retries exhausted. Carries what was counted so far."""
    def __init__(self, pr: int, page: int, partial: TraversalResult):
        super().__init__(
            f"Rate limit retries exhausted while fetching PR #{pr} (page {page})"
        )
        self.pr = pr
        self.page = page
        self.partial = partial


def validate_target(owner: str, repo: str, pr: int) -> None:
    """Reject malformed input before the network is touched."""
    if not isinstance(owner, str) or not owner.strip():
        raise InvalidInputError("owner must be a non-empty string")
    if not isinstance(repo, str) or not repo.strip():
        raise InvalidInputError("repo must be a non-empty string")
    if isinstance(pr, bool) or not isinstance(pr, int) or pr <= 0:
        raise InvalidInputError(f"PR number must be a positive integer, got {pr!r}")


class Traverser:
    """Breadth-first traversal of a squash-merge PR closure.

    The commit source is injected so independent traversals share nothing
    but the source's rate-limit budget. All per-run state (queue, processed
    set, aggregator) is created inside traverse().
    """

    def __init__(
        self,
        source: CommitSource,
        config: TraversalConfig | None = None,
        retry: RetryConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source = source
        self.config = config or TraversalConfig()
        self.retry = retry or RetryConfig()
        self._sleep = sleep
        self._clock = clock

    def traverse(
        self,
        owner: str,
        repo: str,
        start_pr: int,
        should_stop: Callable[[], bool] | None = None,
        deadline: float | None = None,
    ) -> TraversalResult:
        """
        Count commits per author across the closure of start_pr.

        Args:
            owner: Repository owner
            repo: Repository name
            start_pr: PR to start from
            should_stop: Optional cancellation check, polled before each page
            deadline: Optional clock() value after which the walk stops

        Returns:
            TraversalResult; complete is False if the walk was cancelled

        Raises:
            InvalidInputError: Malformed arguments
            RootPRError: start_pr missing or unreachable
            RateLimitExceededError: Rate limit retries exhausted
        """
        validate_target(owner, repo, start_pr)

        queue: deque[int] = deque([start_pr])
        processed: set[int] = set()
        visited: list[int] = []
        skipped: list[SkippedPR] = []
        aggregator = AttributionAggregator()

        def result(complete: bool) -> TraversalResult:
            return TraversalResult(
                attribution=aggregator.snapshot(),
                visited_prs=tuple(visited),
                skipped=tuple(skipped),
                complete=complete,
            )

        logger.info("Traversing closure of %s/%s#%d", owner, repo, start_pr)

        while queue:
            pr = queue[0]
            if pr in processed:
                queue.popleft()
                continue

            page = 1
            failed = False
            while True:
                if self._cancelled(should_stop, deadline):
                    logger.warning("Traversal cancelled at PR #%d page %d", pr, page)
                    return result(complete=False)

                try:
                    commits = self._fetch_page(owner, repo, pr, page)
                except RateLimitError as e:
                    raise RateLimitExceededError(pr, page, result(complete=False)) from e
                except GitHubAPIError as e:
                    # Not found, retries exhausted, or any other refusal (403, 410, 422)
                    if pr == start_pr:
                        raise RootPRError(pr, page, e) from e
                    logger.warning("Skipping PR #%d (page %d): %s", pr, page, e)
                    skipped.append(SkippedPR(pr=pr, page=page, reason=str(e)))
                    failed = True
                    break

                if not commits:
                    break

                logger.debug("PR #%d page %d: %d commits", pr, page, len(commits))
                for commit in commits:
                    self._handle_commit(commit, pr, queue, processed, skipped, aggregator)
                page += 1

            processed.add(pr)
            queue.popleft()
            if not failed:
                visited.append(pr)
                logger.info("PR #%d traversed (%d pages)", pr, page - 1)

        return result(complete=True)

    def _handle_commit(
        self,
        commit: Commit,
        pr: int,
        queue: deque[int],
        processed: set[int],
        skipped: list[SkippedPR],
        aggregator: AttributionAggregator,
    ) -> None:
        reference = extract_reference(commit.message)
        if reference is None:
            aggregator.record(commit.author_login)
            return

        # Squash marker: stands in for the referenced PR's commits.
        if self.config.count_squash_markers:
            aggregator.record(commit.author_login)

        if reference in processed or reference in queue:
            return

        if len(processed) + len(queue) >= self.config.max_prs:
            if any(s.pr == reference for s in skipped):
                return
            logger.warning(
                "Closure limit of %d PRs reached; not following #%d from PR #%d",
                self.config.max_prs, reference, pr,
            )
            skipped.append(SkippedPR(pr=reference, reason="closure size limit reached"))
            return

        logger.debug("PR #%d commit %s references #%d", pr, commit.sha[:7], reference)
        queue.append(reference)

    def _fetch_page(self, owner: str, repo: str, pr: int, page: int) -> list[Commit]:
        """Fetch one page, retrying rate limits and transient failures."""
        rate_limit_attempts = 0
        network_attempts = 0

        while True:
            try:
                return self.source.fetch_commits_page(owner, repo, pr, page)
            except RateLimitError as e:
                if rate_limit_attempts >= self.retry.max_rate_limit_retries:
                    raise
                rate_limit_attempts += 1
                logger.warning(
                    "Rate limited on PR #%d page %d; waiting %.0fs (attempt %d/%d)",
                    pr, page, e.retry_after,
                    rate_limit_attempts, self.retry.max_rate_limit_retries,
                )
                self._sleep(e.retry_after)
            except TransientNetworkError as e:
                if network_attempts >= self.retry.max_network_retries:
                    raise
                delay = min(self.retry.backoff_base * 2 ** network_attempts, self.retry.max_backoff)
                network_attempts += 1
                logger.warning(
                    "Network error on PR #%d page %d: %s; retrying in %.1fs (attempt %d/%d)",
                    pr, page, e, delay,
                    network_attempts, self.retry.max_network_retries,
                )
                self._sleep(delay)

    def _cancelled(self, should_stop: Callable[[], bool] | None, deadline: float | None) -> bool:
        if should_stop is not None and should_stop():
            return True
        return deadline is not None and self._clock() >= deadline


def traverse(
    source: CommitSource,
    owner: str,
    repo: str,
    start_pr: int,
    config: TraversalConfig | None = None,
    retry: RetryConfig | None = None,
) -> TraversalResult:
    """Convenience wrapper: one Traverser, one traversal."""
    return Traverser(source, config=config, retry=retry).traverse(owner, repo, start_pr)
