from __future__ import annotations

import json
from unittest.mock import patch

from click.testing import CliRunner

from prcredit.cli import main
from prcredit.github import Commit, PRNotFoundError, RateLimitError


class FakeClient:
    def __init__(self, prs):
        self.prs = prs

    def fetch_commits_page(self, owner, repo, pr, page):
        if pr not in self.prs:
            raise PRNotFoundError(owner, repo, pr)
        return self.prs[pr] if page == 1 else []


PRS = {
    10: [
        Commit(sha="a", author_login="alice", message="feat x"),
        Commit(sha="b", author_login="bob", message="squash (#11)"),
    ],
    11: [Commit(sha="c", author_login="carol", message="fix y")],
}


def test_cli_help_lists_commands():
    runner = CliRunner()
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    assert "count" in result.output
    assert "init" in result.output
    assert "rate-limit" in result.output


def test_count_prints_attribution(tmp_path):
    runner = CliRunner()
    with patch("prcredit.cli.GitHubClient", return_value=FakeClient(PRS)):
        result = runner.invoke(main, ["count", "owner", "repo", "10", "--config", str(tmp_path)])

    assert result.exit_code == 0
    assert "Commit counts for PR #10 in owner/repo:" in result.output
    assert "alice: 1 commits" in result.output
    assert "carol: 1 commits" in result.output
    assert "bob" not in result.output
    assert "#10, #11" in result.output


def test_count_json_output(tmp_path):
    runner = CliRunner()
    with patch("prcredit.cli.GitHubClient", return_value=FakeClient(PRS)):
        result = runner.invoke(main, ["count", "owner", "repo", "10", "--json", "--config", str(tmp_path)])

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["attribution"] == {"alice": 1, "carol": 1}
    assert data["visited_prs"] == [10, 11]
    assert data["complete"] is True
    assert data["pr"] == 10


def test_count_markers_flag(tmp_path):
    runner = CliRunner()
    with patch("prcredit.cli.GitHubClient", return_value=FakeClient(PRS)):
        result = runner.invoke(
            main, ["count", "owner", "repo", "10", "--json", "--count-markers", "--config", str(tmp_path)]
        )

    assert json.loads(result.output)["attribution"] == {"alice": 1, "bob": 1, "carol": 1}


def test_count_rejects_invalid_pr_without_network(tmp_path):
    runner = CliRunner()
    with patch("prcredit.cli.GitHubClient") as client_cls:
        result = runner.invoke(main, ["count", "owner", "repo", "0", "--config", str(tmp_path)])

    assert result.exit_code == 1
    assert "Invalid input" in result.output
    client_cls.assert_not_called()


def test_count_missing_root_pr_fails(tmp_path):
    runner = CliRunner()
    with patch("prcredit.cli.GitHubClient", return_value=FakeClient({})):
        result = runner.invoke(main, ["count", "owner", "repo", "99", "--config", str(tmp_path)])

    assert result.exit_code == 1
    assert "PR #99" in result.output


def test_init_writes_sample_config(tmp_path):
    runner = CliRunner()
    with patch("prcredit.cli.get_repo_root", return_value=tmp_path):
        result = runner.invoke(main, ["init"])
        again = runner.invoke(main, ["init"])

    assert result.exit_code == 0
    assert (tmp_path / "prcredit.yml").exists()
    assert "Skipped" in again.output


def test_rate_limit_command(tmp_path):
    runner = CliRunner()
    payload = {"resources": {"core": {"limit": 5000, "remaining": 4321, "reset": 0}}}
    with patch("prcredit.cli.get_repo_root", return_value=tmp_path), \
            patch("prcredit.cli.GitHubClient") as client_cls:
        client_cls.return_value.check_rate_limit.return_value = payload
        result = runner.invoke(main, ["rate-limit"])

    assert result.exit_code == 0
    assert "Remaining: 4321/5000" in result.output


class RateLimitedClient(FakeClient):
    def fetch_commits_page(self, owner, repo, pr, page):
        raise RateLimitError(0.0)


def _json_payload(output):
    # Error lines precede the JSON document
    return json.loads(output[output.index("{"):])


def test_count_rate_limit_exhaustion_json(tmp_path):
    (tmp_path / "prcredit.yml").write_text("retry:\n  max_rate_limit_retries: 0\n")
    runner = CliRunner()
    with patch("prcredit.cli.GitHubClient", return_value=RateLimitedClient({})):
        result = runner.invoke(main, ["count", "owner", "repo", "10", "--json", "--config", str(tmp_path)])

    assert result.exit_code == 1
    data = _json_payload(result.output)
    assert data["complete"] is False
    assert data["attribution"] == {}
    assert data["visited_prs"] == []


def test_count_rate_limit_exhaustion_text_without_counts(tmp_path):
    (tmp_path / "prcredit.yml").write_text("retry:\n  max_rate_limit_retries: 0\n")
    runner = CliRunner()
    with patch("prcredit.cli.GitHubClient", return_value=RateLimitedClient({})):
        result = runner.invoke(main, ["count", "owner", "repo", "10", "--config", str(tmp_path)])

    assert result.exit_code == 1
    assert "Rate limit retries exhausted" in result.output
    assert "PRs included (0)" in result.output


def test_count_zero_timeout_stops_immediately(tmp_path):
    runner = CliRunner()
    client = FakeClient(PRS)
    with patch("prcredit.cli.GitHubClient", return_value=client), \
            patch.object(client, "fetch_commits_page", wraps=client.fetch_commits_page) as fetch:
        result = runner.invoke(
            main, ["count", "owner", "repo", "10", "--json", "--timeout", "0", "--config", str(tmp_path)]
        )

    assert result.exit_code == 0
    data = _json_payload(result.output)
    assert data["complete"] is False
    assert data["visited_prs"] == []
    fetch.assert_not_called()
