"""
prcredit CLI - Count commits per author across a PR and the PRs it squash-merged.

Commands:
    init        - Write a sample prcredit.yml
    count       - Count commits per author for a PR closure
    rate-limit  - Show remaining GitHub API quota
"""

from __future__ import annotations

import json
import logging
import sys
import time
from pathlib import Path

import click
from dotenv import load_dotenv

from .config import get_repo_root

# Load .env file from current directory or repo root
load_dotenv()
load_dotenv(get_repo_root() / ".env")

from . import __version__
from .config import CONFIG_FILENAME, PrcreditConfig
from .github import GitHubAPIError, GitHubClient
from .traversal import (
    InvalidInputError,
    RateLimitExceededError,
    RootPRError,
    TraversalResult,
    Traverser,
    validate_target,
)


SAMPLE_CONFIG = """\
# prcredit configuration
# GITHUB_TOKEN is read from the environment (or a .env file)

traversal:
  max_prs: 500                 # Stop following references beyond this many PRs
  count_squash_markers: false  # Also credit the author of a squash-merge commit

retry:
  max_rate_limit_retries: 3    # Waits honour the server's Retry-After hint
  max_network_retries: 3
  backoff_base: 1.0            # Seconds, doubled per network retry
  max_backoff: 60.0

github:
  api_base: https://api.github.com
  timeout: 30                  # Per-request timeout in seconds
"""


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _echo_result(owner: str, repo: str, pr: int, result: TraversalResult) -> None:
    click.echo(f"Commit counts for PR #{pr} in {owner}/{repo}:")
    for author, count in sorted(result.attribution.items(), key=lambda x: (-x[1], x[0])):
        click.echo(f"{author}: {count} commits")

    visited = ", ".join(f"#{n}" for n in result.visited_prs)
    click.echo(f"\nPRs included ({len(result.visited_prs)}): {visited}")
    click.echo(f"Total commits: {result.total_commits}")

    for warning in result.warnings:
        click.echo(f"  ⚠️  Skipped {warning}", err=True)
    if not result.complete:
        click.echo("  ⚠️  Result is incomplete (traversal stopped early)", err=True)


def _echo_json(owner: str, repo: str, pr: int, result: TraversalResult) -> None:
    click.echo(json.dumps({
        "owner": owner,
        "repo": repo,
        "pr": pr,
        **result.to_dict(),
    }, indent=2))


@click.group()
@click.version_option(version=__version__)
def main():
    """prcredit - Attribute PR commits to authors, following squash merges."""
    pass


@main.command()
@click.option("--force", is_flag=True, help="Overwrite existing configuration")
def init(force: bool):
    """Write a sample prcredit.yml in the current repository."""
    repo_root = get_repo_root()
    config_path = repo_root / CONFIG_FILENAME
    if config_path.exists() and not force:
        click.echo(f"Skipped: {config_path} (already exists)")
        return
    config_path.write_text(SAMPLE_CONFIG)
    click.echo(f"Created: {config_path}")


@main.command()
@click.argument("owner")
@click.argument("repo")
@click.argument("pr_number", type=int)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--max-prs", default=None, type=int, help="Maximum PRs to include in the closure")
@click.option("--count-markers", is_flag=True, help="Also credit squash-merge commits to their author")
@click.option("--timeout", default=None, type=float, help="Stop after this many seconds (partial result)")
@click.option("--config", "config_dir", default=None, type=click.Path(file_okay=False, path_type=Path),
              help="Directory containing prcredit.yml (default: repo root)")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
def count(
    owner: str,
    repo: str,
    pr_number: int,
    as_json: bool,
    max_prs: int | None,
    count_markers: bool,
    timeout: float | None,
    config_dir: Path | None,
    verbose: bool,
):
    """Count commits per author for a PR and every PR it squash-merged.

    Examples:

        prcredit count octocat hello-world 42
        prcredit count octocat hello-world 42 --json
        prcredit count octocat hello-world 42 --timeout 120
    """
    _setup_logging(verbose)

    try:
        validate_target(owner, repo, pr_number)
    except InvalidInputError as e:
        click.echo(f"❌ Invalid input: {e}", err=True)
        sys.exit(1)

    config = PrcreditConfig.load(config_dir or get_repo_root())
    if max_prs is not None:
        config.traversal.max_prs = max_prs
    if count_markers:
        config.traversal.count_squash_markers = True

    client = GitHubClient(api_base=config.github.api_base, timeout=config.github.timeout)
    traverser = Traverser(client, config=config.traversal, retry=config.retry)
    deadline = time.monotonic() + timeout if timeout is not None else None

    try:
        result = traverser.traverse(owner, repo, pr_number, deadline=deadline)
    except RateLimitExceededError as e:
        click.echo(f"❌ {e}", err=True)
        if as_json:
            _echo_json(owner, repo, pr_number, e.partial)
        else:
            _echo_result(owner, repo, pr_number, e.partial)
        sys.exit(1)
    except RootPRError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)
    except GitHubAPIError as e:
        click.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)

    if as_json:
        _echo_json(owner, repo, pr_number, result)
    else:
        _echo_result(owner, repo, pr_number, result)


@main.command("rate-limit")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def rate_limit(as_json: bool):
    """Show remaining GitHub API quota."""
    config = PrcreditConfig.load(get_repo_root())
    client = GitHubClient(api_base=config.github.api_base, timeout=config.github.timeout)

    try:
        data = client.check_rate_limit()
    except GitHubAPIError as e:
        click.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    core = data.get("resources", {}).get("core", data.get("rate", {}))
    click.echo(f"Remaining: {core.get('remaining', '?')}/{core.get('limit', '?')}")
    reset = core.get("reset")
    if reset:
        click.echo(f"Resets in: {max(int(reset - time.time()), 0)}s")
