"""Tests for the CLI entry point."""

import subprocess
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from click.testing import CliRunner

from changelens_cli.cli import _build_store, main
from changelens_core.errors import ProviderError, SectionNotFound, TransportError
from changelens_core.models import PRResult, Verdict
from changelens_store.noop import NoOpCacheStore
from changelens_store.sqlite import SQLiteCacheStore


def _make_config(github_token="tok", oracle="none", anthropic_key=None, openai_key=None, repo="owner/repo"):
    return {
        "repo": repo,
        "changelog": "CHANGELOG.md",
        "version": "",
        "limit": 0,
        "oracle": oracle,
        "oracle_model": None,
        "cache": True,
        "cache_path": "~/.changelens/cache.db",
        "cache_ttl_days": 7,
        "timeout": 10,
        "github_token": github_token,
        "anthropic_api_key": anthropic_key,
        "openai_api_key": openai_key,
    }


def _patch_common(mocker, config=None, token="tok"):
    """Patch load_config, resolve_github_token, and _build_store for most tests."""
    cfg = config or _make_config()
    mocker.patch("changelens_core.config.load_config", return_value=cfg)
    mocker.patch("changelens_cli.auth.resolve_github_token", return_value=token)
    mock_store = MagicMock(spec=SQLiteCacheStore)
    mocker.patch("changelens_cli.cli._build_store", return_value=mock_store)
    return cfg, mock_store


def _patch_checker(mocker, results, rate_limited_until=None):
    pr_client = MagicMock()
    pr_client.rate_limited_until = rate_limited_until
    client_cls = mocker.patch("changelens_cli.commands.check.PullRequestClient", return_value=pr_client)
    checker = MagicMock()
    checker.check_changelog.return_value = results
    checker_cls = mocker.patch("changelens_cli.commands.check.ChangelogChecker", return_value=checker)
    return client_cls, checker_cls, checker


GOOD = PRResult(100, "Fix bug", "Fix bug in client", Verdict.GOOD_MATCH)
MISMATCH = PRResult(101, "Fix bug", "Add feature", Verdict.POTENTIAL_MISMATCH)
MISSING = PRResult(200, "", "", Verdict.NOT_FOUND, error=ValueError("gone"))


# ---------------------------------------------------------------------------
# check command
# ---------------------------------------------------------------------------


class TestCheckValidation:
    def test_missing_repo(self, mocker):
        _patch_common(mocker, config=_make_config(repo=None))
        mocker.patch("changelens_cli.repo.detect_repo_from_git", return_value=None)

        result = CliRunner().invoke(main, ["check"])
        assert result.exit_code != 0
        assert "--repo" in result.output

    def test_malformed_repo(self, mocker):
        _patch_common(mocker)

        result = CliRunner().invoke(main, ["check", "--repo", "just-a-name"])
        assert result.exit_code != 0
        assert "owner/name" in result.output

    def test_missing_openai_key(self, mocker):
        _patch_common(mocker)

        result = CliRunner().invoke(main, ["check", "--oracle", "openai"])
        assert result.exit_code != 0
        assert "OPENAI_API_KEY" in result.output

    def test_missing_anthropic_key(self, mocker):
        _patch_common(mocker, config=_make_config(oracle="anthropic"))

        result = CliRunner().invoke(main, ["check"])
        assert result.exit_code != 0
        assert "ANTHROPIC_API_KEY" in result.output

    def test_missing_oracle_sdk(self, mocker):
        _patch_common(mocker, config=_make_config(openai_key="oai"))
        mocker.patch(
            "changelens_cli.commands.check.build_oracle",
            side_effect=ImportError("The 'openai' package is required for this oracle."),
        )

        result = CliRunner().invoke(main, ["check", "--oracle", "openai"])
        assert result.exit_code == 2
        assert "package is required" in result.output
        assert not isinstance(result.exception, ImportError)

    def test_missing_github_token_only_warns(self, mocker):
        _patch_common(mocker, config=_make_config(github_token=None), token=None)
        _patch_checker(mocker, [GOOD])

        result = CliRunner().invoke(main, ["check"])
        assert result.exit_code == 0
        assert "unauthenticated" in result.output


class TestCheckRun:
    def test_passes_config_through(self, mocker):
        _, store = _patch_common(mocker)
        client_cls, checker_cls, checker = _patch_checker(mocker, [GOOD])

        result = CliRunner().invoke(
            main,
            ["check", "--repo", "cosmos/gaia", "--changelog", "CHANGES.md", "--version", "v1.2.0", "--limit", "3"],
        )

        assert result.exit_code == 0
        client_cls.assert_called_once_with("tok", store=store, timeout=10)
        args = checker_cls.call_args
        assert args.args[1:] == ("cosmos", "gaia")
        assert args.kwargs["oracle"] is None
        checker.check_changelog.assert_called_once_with("CHANGES.md", version="v1.2.0", limit=3)

    def test_repo_from_config(self, mocker):
        _patch_common(mocker, config=_make_config(repo="cfg/repo"))
        _, checker_cls, _ = _patch_checker(mocker, [GOOD])

        CliRunner().invoke(main, ["check"])
        assert checker_cls.call_args.args[1:] == ("cfg", "repo")

    def test_repo_detected_from_git(self, mocker):
        _patch_common(mocker, config=_make_config(repo=None))
        mocker.patch("changelens_cli.repo.detect_repo_from_git", return_value="git/remote")
        _, checker_cls, _ = _patch_checker(mocker, [GOOD])

        CliRunner().invoke(main, ["check"])
        assert checker_cls.call_args.args[1:] == ("git", "remote")

    def test_no_cache_uses_noop_store(self, mocker):
        _patch_common(mocker)
        client_cls, checker_cls, _ = _patch_checker(mocker, [GOOD])

        CliRunner().invoke(main, ["check", "--no-cache"])
        assert isinstance(client_cls.call_args.kwargs["store"], NoOpCacheStore)
        assert isinstance(checker_cls.call_args.kwargs["store"], NoOpCacheStore)

    def test_report_lists_prs_and_counts(self, mocker):
        _patch_common(mocker)
        _patch_checker(mocker, [GOOD, MISMATCH])

        result = CliRunner().invoke(main, ["check"])
        assert "#100" in result.output
        assert "#101" in result.output
        assert "2 PR(s) checked" in result.output

    def test_store_closed_after_command(self, mocker):
        _, store = _patch_common(mocker)
        _patch_checker(mocker, [GOOD])

        CliRunner().invoke(main, ["check"])
        store.close.assert_called_once()

    def test_no_cache_never_opens_store(self, mocker):
        _patch_common(mocker)
        build_store = mocker.patch("changelens_cli.cli._build_store")
        _patch_checker(mocker, [GOOD])

        result = CliRunner().invoke(main, ["check", "--no-cache"])
        assert result.exit_code == 0
        build_store.assert_not_called()

    def test_verify_never_opens_store(self, mocker):
        _patch_common(mocker)
        build_store = mocker.patch("changelens_cli.cli._build_store")
        mocker.patch("changelens_cli.commands.verify.PullRequestClient").return_value.check_access.return_value = True

        CliRunner().invoke(main, ["verify"])
        build_store.assert_not_called()

    def test_rate_limit_notice(self, mocker):
        _patch_common(mocker)
        reset = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
        _patch_checker(mocker, [GOOD], rate_limited_until=reset)

        result = CliRunner().invoke(main, ["check"])
        assert "rate limit" in result.output
        assert "12:30:00" in result.output


class TestCheckErrors:
    def test_missing_changelog_file(self, mocker):
        _patch_common(mocker)
        _, _, checker = _patch_checker(mocker, [])
        checker.check_changelog.side_effect = FileNotFoundError("CHANGELOG.md")

        result = CliRunner().invoke(main, ["check"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_section_not_found(self, mocker):
        _patch_common(mocker)
        _, _, checker = _patch_checker(mocker, [])
        checker.check_changelog.side_effect = SectionNotFound("no section found for v9.9.9 in changelog file")

        result = CliRunner().invoke(main, ["check", "--version", "v9.9.9"])
        assert result.exit_code == 1
        assert "v9.9.9" in result.output


class TestCheckExitCode:
    def test_all_good_exits_zero(self, mocker):
        _patch_common(mocker)
        _patch_checker(mocker, [GOOD])
        assert CliRunner().invoke(main, ["check"]).exit_code == 0

    def test_not_found_fails_by_default(self, mocker):
        _patch_common(mocker)
        _patch_checker(mocker, [GOOD, MISSING])
        assert CliRunner().invoke(main, ["check"]).exit_code == 1

    def test_mismatch_passes_by_default(self, mocker):
        _patch_common(mocker)
        _patch_checker(mocker, [MISMATCH])
        assert CliRunner().invoke(main, ["check"]).exit_code == 0

    def test_fail_on_mismatch(self, mocker):
        _patch_common(mocker)
        _patch_checker(mocker, [MISMATCH])
        assert CliRunner().invoke(main, ["check", "--fail-on", "mismatch"]).exit_code == 1

    def test_fail_on_never(self, mocker):
        _patch_common(mocker)
        _patch_checker(mocker, [MISSING])
        assert CliRunner().invoke(main, ["check", "--fail-on", "never"]).exit_code == 0


# ---------------------------------------------------------------------------
# verify command
# ---------------------------------------------------------------------------


class TestVerifyCommand:
    def test_github_ok_oracle_disabled(self, mocker):
        _patch_common(mocker)
        client = mocker.patch("changelens_cli.commands.verify.PullRequestClient").return_value
        client.check_access.return_value = True

        result = CliRunner().invoke(main, ["verify"])
        assert result.exit_code == 0
        assert "owner/repo is readable" in result.output
        assert "disabled" in result.output

    def test_github_unreadable(self, mocker):
        _patch_common(mocker)
        client = mocker.patch("changelens_cli.commands.verify.PullRequestClient").return_value
        client.check_access.return_value = False

        result = CliRunner().invoke(main, ["verify"])
        assert result.exit_code == 1
        assert "cannot read" in result.output

    def test_github_network_failure(self, mocker):
        _patch_common(mocker)
        client = mocker.patch("changelens_cli.commands.verify.PullRequestClient").return_value
        client.check_access.side_effect = TransportError("connection refused")

        result = CliRunner().invoke(main, ["verify"])
        assert result.exit_code == 1
        assert "connection refused" in result.output

    def test_oracle_key_missing(self, mocker):
        _patch_common(mocker)
        mocker.patch("changelens_cli.commands.verify.PullRequestClient").return_value.check_access.return_value = True

        result = CliRunner().invoke(main, ["verify", "--oracle", "openai"])
        assert result.exit_code == 1
        assert "OPENAI_API_KEY" in result.output

    def test_oracle_key_accepted(self, mocker):
        _patch_common(mocker, config=_make_config(anthropic_key="ant"))
        mocker.patch("changelens_cli.commands.verify.PullRequestClient").return_value.check_access.return_value = True
        build_oracle = mocker.patch("changelens_cli.commands.verify.build_oracle")

        result = CliRunner().invoke(main, ["verify", "--oracle", "anthropic"])
        assert result.exit_code == 0
        build_oracle.return_value.ping.assert_called_once()
        assert "key accepted" in result.output

    def test_oracle_sdk_missing(self, mocker):
        _patch_common(mocker, config=_make_config(anthropic_key="ant"))
        mocker.patch("changelens_cli.commands.verify.PullRequestClient").return_value.check_access.return_value = True
        mocker.patch(
            "changelens_cli.commands.verify.build_oracle",
            side_effect=ImportError("The 'anthropic' package is required for this oracle."),
        )

        result = CliRunner().invoke(main, ["verify", "--oracle", "anthropic"])
        assert result.exit_code == 2
        assert "package is required" in result.output

    def test_oracle_key_rejected(self, mocker):
        _patch_common(mocker, config=_make_config(openai_key="bad"))
        mocker.patch("changelens_cli.commands.verify.PullRequestClient").return_value.check_access.return_value = True
        build_oracle = mocker.patch("changelens_cli.commands.verify.build_oracle")
        build_oracle.return_value.ping.side_effect = ProviderError("invalid api key")

        result = CliRunner().invoke(main, ["verify", "--oracle", "openai"])
        assert result.exit_code == 1
        assert "invalid api key" in result.output


# ---------------------------------------------------------------------------
# main group
# ---------------------------------------------------------------------------


class TestMainGroup:
    def test_invalid_config_file_is_usage_error(self, mocker):
        mocker.patch("changelens_core.config.load_config", side_effect=ValueError("must contain a YAML mapping"))
        mocker.patch("changelens_cli.auth.resolve_github_token", return_value="tok")

        result = CliRunner().invoke(main, ["check"])
        assert result.exit_code == 2
        assert "YAML mapping" in result.output

    def test_resolved_token_overrides_config(self, mocker):
        _patch_common(mocker, config=_make_config(github_token=None), token="gh-cli-token")
        client_cls, _, _ = _patch_checker(mocker, [GOOD])

        CliRunner().invoke(main, ["check"])
        assert client_cls.call_args.args[0] == "gh-cli-token"


# ---------------------------------------------------------------------------
# resolve_github_token
# ---------------------------------------------------------------------------


class TestResolveGithubToken:
    def test_returns_env_var_when_set(self, monkeypatch):
        from changelens_cli.auth import resolve_github_token

        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        assert resolve_github_token() == "env-token"

    def test_gh_token_env_var(self, monkeypatch):
        from changelens_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.setenv("GH_TOKEN", "gh-env-token")
        assert resolve_github_token() == "gh-env-token"

    def test_falls_back_to_gh_cli(self, monkeypatch):
        from changelens_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="gh-token\n")
            result = resolve_github_token()
        assert result == "gh-token"

    def test_returns_none_when_gh_not_installed(self, monkeypatch):
        from changelens_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        with patch("subprocess.run", side_effect=FileNotFoundError):
            result = resolve_github_token()
        assert result is None

    def test_returns_none_when_gh_times_out(self, monkeypatch):
        from changelens_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="gh", timeout=5)):
            result = resolve_github_token()
        assert result is None

    def test_returns_none_when_gh_returns_error(self, monkeypatch):
        from changelens_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("GH_TOKEN", raising=False)
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=1, stdout="")
            result = resolve_github_token()
        assert result is None


# ---------------------------------------------------------------------------
# repository detection
# ---------------------------------------------------------------------------


class TestDetectRepo:
    def _detect(self, stdout, returncode=0):
        from changelens_cli.repo import detect_repo_from_git

        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=returncode, stdout=stdout)
            return detect_repo_from_git()

    def test_https_remote(self):
        assert self._detect("https://github.com/cosmos/gaia.git\n") == "cosmos/gaia"

    def test_ssh_remote(self):
        assert self._detect("git@github.com:cosmos/gaia.git\n") == "cosmos/gaia"

    def test_non_github_remote(self):
        assert self._detect("https://gitlab.com/cosmos/gaia.git\n") is None

    def test_no_origin(self):
        assert self._detect("", returncode=2) is None

    def test_git_not_installed(self):
        from changelens_cli.repo import detect_repo_from_git

        with patch("subprocess.run", side_effect=FileNotFoundError):
            assert detect_repo_from_git() is None

    def test_resolve_prefers_explicit(self):
        from changelens_cli.repo import resolve_repo

        assert resolve_repo("a/b", {"repo": "c/d"}) == "a/b"
        assert resolve_repo(None, {"repo": "c/d"}) == "c/d"


# ---------------------------------------------------------------------------
# _build_store
# ---------------------------------------------------------------------------


class TestBuildStore:
    def test_returns_noop_when_cache_disabled(self):
        assert isinstance(_build_store({"cache": False}), NoOpCacheStore)

    def test_returns_sqlite_store(self, tmp_path):
        store = _build_store({"cache": True, "cache_path": str(tmp_path / "cache.db")})
        assert isinstance(store, SQLiteCacheStore)
        store.close()

    def test_ttl_from_config(self, tmp_path):
        store = _build_store({"cache_path": str(tmp_path / "cache.db"), "cache_ttl_days": 1})
        assert store.ttl.days == 1
        store.close()

    def test_falls_back_to_noop_when_unwritable(self, mocker):
        mocker.patch("changelens_store.sqlite.SQLiteCacheStore", side_effect=OSError("read-only file system"))
        assert isinstance(_build_store({"cache": True}), NoOpCacheStore)
