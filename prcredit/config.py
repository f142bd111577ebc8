"""
Configuration management for prcredit.

Loads and validates prcredit.yml: traversal limits, squash-marker policy,
retry/backoff settings and GitHub connection settings. Every setting is
optional; a missing file yields the defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .github import DEFAULT_TIMEOUT, GITHUB_API_BASE


CONFIG_FILENAME = "prcredit.yml"


@dataclass
class TraversalConfig:
    """Limits and policy for closure traversal."""
    max_prs: int = 500  # Upper bound on PRs in one closure
    # Count a squash-marker commit for its own author as well as expanding it
    count_squash_markers: bool = False


@dataclass
class RetryConfig:
    """Retry policy for rate limits and network failures."""
    max_rate_limit_retries: int = 3
    max_network_retries: int = 3
    backoff_base: float = 1.0  # seconds, doubled on each network retry
    max_backoff: float = 60.0


@dataclass
class GitHubConfig:
    """GitHub connection settings. The token always comes from GITHUB_TOKEN."""
    api_base: str = GITHUB_API_BASE
    timeout: float = DEFAULT_TIMEOUT


@dataclass
class PrcreditConfig:
    """Complete prcredit configuration."""
    traversal: TraversalConfig = field(default_factory=TraversalConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)

    @classmethod
    def load(cls, repo_root: Path) -> "PrcreditConfig":
        """Load configuration from repo root directory."""
        config_path = repo_root / CONFIG_FILENAME
        if not config_path.exists():
            return cls()

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        return cls._parse(data)

    @classmethod
    def _parse(cls, data: dict[str, Any]) -> "PrcreditConfig":
        """Parse configuration dictionary."""
        config = cls()

        traversal_data = data.get("traversal") or {}
        config.traversal = TraversalConfig(
            max_prs=int(traversal_data.get("max_prs", 500)),
            count_squash_markers=bool(traversal_data.get("count_squash_markers", False)),
        )

        retry_data = data.get("retry") or {}
        config.retry = RetryConfig(
            max_rate_limit_retries=int(retry_data.get("max_rate_limit_retries", 3)),
            max_network_retries=int(retry_data.get("max_network_retries", 3)),
            backoff_base=float(retry_data.get("backoff_base", 1.0)),
            max_backoff=float(retry_data.get("max_backoff", 60.0)),
        )

        github_data = data.get("github") or {}
        config.github = GitHubConfig(
            api_base=github_data.get("api_base", GITHUB_API_BASE),
            timeout=float(github_data.get("timeout", DEFAULT_TIMEOUT)),
        )

        return config


def get_repo_root() -> Path:
    """Find the repository root (directory containing .git)."""
    current = Path.cwd()
    while current != current.parent:
        if (current / ".git").exists():
            return current
        current = current.parent
    # No .git found, use current directory
    return Path.cwd()
