"""Tests for the ffw command-line interface"""
from pathlib import Path

import pytest
from click.testing import CliRunner

from forkflow import __version__
from forkflow.config import WorkflowConfig, config_path, load_config
from forkflow.ffw import cli


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def in_local(fork_setup, monkeypatch):
    """Run commands from inside the local clone."""
    monkeypatch.chdir(fork_setup.local_path)
    return fork_setup


class TestEntry:
    def test_version(self, cli_runner):
        result = cli_runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_outside_repository(self, cli_runner, temp_dir, monkeypatch):
        monkeypatch.chdir(temp_dir)
        result = cli_runner.invoke(cli, ["--no-interactive", "help"])
        assert result.exit_code == 0
        assert "Usage: ffw [command] [args]" in result.output

    def test_no_command_without_terminal(self, cli_runner, in_local):
        result = cli_runner.invoke(cli, ["--no-interactive"])
        assert result.exit_code == 1
        assert "Not an interactive terminal" in result.output
        assert "Please provide a command." in result.output

    def test_unknown_command(self, cli_runner, in_local):
        result = cli_runner.invoke(cli, ["--no-interactive", "frobnicate"])
        assert result.exit_code == 2

    def test_outside_repository_is_fatal(self, cli_runner, temp_dir, monkeypatch):
        monkeypatch.chdir(temp_dir)
        result = cli_runner.invoke(cli, ["--no-interactive", "status"])
        assert result.exit_code == 1
        assert "Not a Git repository" in result.output


class TestSetup:
    def test_missing_config_runs_setup_first(self, cli_runner, in_local):
        path = config_path(in_local.local.git_dir)
        path.unlink()

        result = cli_runner.invoke(cli, ["--no-interactive", "status"])
        assert result.exit_code == 0, result.output
        assert "Config file not found" in result.output
        assert path.is_file()

    def test_init_with_options(self, cli_runner, in_local):
        result = cli_runner.invoke(cli, ["--no-interactive", "init", "--github-user", "octocat",
                                         "--main-branch", "trunk"])
        assert result.exit_code == 0, result.output
        config = load_config(config_path(in_local.local.git_dir))
        assert config == WorkflowConfig(main_branch="trunk", github_user="octocat")

    def test_config_alias_prompts(self, cli_runner, in_local):
        result = cli_runner.invoke(cli, ["--interactive", "config"],
                                   input="origin\nupstream\nmain\nocto\n")
        assert result.exit_code == 0, result.output
        assert load_config(config_path(in_local.local.git_dir)).github_user == "octo"

    def test_reconfigure_overwrites(self, cli_runner, in_local):
        cli_runner.invoke(cli, ["--no-interactive", "init", "--fork-remote", "mine",
                                "--github-user", "octocat"])
        cli_runner.invoke(cli, ["--no-interactive", "init"])
        assert load_config(config_path(in_local.local.git_dir)) == WorkflowConfig()


class TestCommands:
    def test_status_on_main(self, cli_runner, in_local):
        result = cli_runner.invoke(cli, ["--no-interactive", "status"])
        assert result.exit_code == 0, result.output
        assert "Git Workflow Status" in result.output
        assert "You are on the main branch." in result.output
        assert "ffw new <branch-name>" in result.output

    def test_status_suggests_commit(self, cli_runner, in_local):
        (in_local.local_path / "README.md").write_text("changed\n")
        result = cli_runner.invoke(cli, ["--no-interactive", "status"])
        assert "uncommitted changes" in result.output
        assert "ffw commit" in result.output

    def test_status_counts_commits_ahead(self, cli_runner, in_local, feature_branch):
        result = cli_runner.invoke(cli, ["--no-interactive", "status"])
        assert result.exit_code == 0, result.output
        assert "1 commit(s)" in result.output
        assert "Fix login" in result.output
        assert "ffw push" in result.output

    def test_full_feature_flow(self, cli_runner, in_local):
        result = cli_runner.invoke(cli, ["--no-interactive", "new", "Add", "Widgets"])
        assert result.exit_code == 0, result.output
        assert in_local.local.active_branch.name == "add-widgets"

        (in_local.local_path / "widgets.py").write_text("WIDGETS = []\n")
        result = cli_runner.invoke(cli, ["--no-interactive", "commit", "Add widgets"])
        assert result.exit_code == 0, result.output
        assert in_local.local.head.commit.message.strip() == "Add widgets"

        result = cli_runner.invoke(cli, ["--no-interactive", "push"])
        assert result.exit_code == 0, result.output
        assert in_local.fork_has_branch("add-widgets")

        result = cli_runner.invoke(cli, ["--no-interactive", "cleanup", "--yes"])
        assert result.exit_code == 0, result.output
        assert "add-widgets" not in in_local.local.heads
        assert not in_local.fork_has_branch("add-widgets")

    def test_push_on_main_is_fatal(self, cli_runner, in_local):
        result = cli_runner.invoke(cli, ["--no-interactive", "push"])
        assert result.exit_code == 1
        assert "not allowed on the 'main' branch" in result.output

    def test_clean_main_is_fatal(self, cli_runner, in_local):
        result = cli_runner.invoke(cli, ["--no-interactive", "clean", "main"])
        assert result.exit_code == 1
        assert "Cannot delete the 'main' branch!" in result.output

    def test_sync_dirty_tree(self, cli_runner, in_local):
        (in_local.local_path / "README.md").write_text("changed\n")
        result = cli_runner.invoke(cli, ["--no-interactive", "sync"])
        assert result.exit_code == 1
        assert "Working tree is dirty" in result.output

    def test_sync_forced(self, cli_runner, in_local):
        (in_local.local_path / "README.md").write_text("changed\n")
        result = cli_runner.invoke(cli, ["--no-interactive", "--force", "--dry-run", "sync", "--no-push"])
        assert result.exit_code == 0, result.output
        assert "Continuing with a dirty tree" in result.output

    def test_dry_run_changes_nothing(self, cli_runner, in_local):
        in_local.upstream_commit()
        before = in_local.local.head.commit.hexsha
        result = cli_runner.invoke(cli, ["--no-interactive", "--dry-run", "sync", "--push"])
        assert result.exit_code == 0, result.output
        assert "Would execute" in result.output
        assert in_local.local.head.commit.hexsha == before

    def test_history_stays_out_of_commits(self, cli_runner, in_local, feature_branch):
        result = cli_runner.invoke(cli, ["--no-interactive", "--save-history", "status"])
        assert result.exit_code == 0, result.output
        assert (Path(in_local.local.git_dir) / ".ffw_history.json").is_file()
        assert not (in_local.local_path / ".ffw_history.json").exists()

        (in_local.local_path / "login.py").write_text("print('tweaked')\n")
        result = cli_runner.invoke(cli, ["--no-interactive", "commit", "Tweak"])
        assert result.exit_code == 0, result.output
        assert list(in_local.local.head.commit.stats.files) == ["login.py"]

    def test_pr_fallback_prints_url(self, cli_runner, in_local, feature_branch, monkeypatch):
        monkeypatch.setattr("forkflow.runner.shutil.which",
                            lambda tool: None if tool == "gh" else "/usr/bin/" + tool)
        in_local.local.remote("upstream").set_url("git@github.com:acme/widgets.git")
        in_local.local.git.update_ref("refs/remotes/upstream/main", "main")
        cli_runner.invoke(cli, ["--no-interactive", "init", "--github-user", "octocat"])

        result = cli_runner.invoke(cli, ["--no-interactive", "pr"])
        assert result.exit_code == 0, result.output
        assert "GitHub CLI ('gh') not found" in result.output
        assert "compare/main...octocat:fix/login" in result.output
        assert in_local.fork_has_branch(feature_branch)


class TestMenu:
    def test_quit(self, cli_runner, in_local):
        result = cli_runner.invoke(cli, ["--interactive"], input="q\n")
        assert result.exit_code == 0, result.output
        assert "Git Workflow Helper" in result.output
        assert "Exiting." in result.output

    def test_feature_options_unavailable_on_main(self, cli_runner, in_local):
        result = cli_runner.invoke(cli, ["--interactive"], input="5\n\nx\n\nq\n")
        assert result.exit_code == 0, result.output
        assert "(Unavailable on main)" in result.output
        assert "Operation not available on main." in result.output
        assert "Invalid option." in result.output

    def test_status_option(self, cli_runner, in_local):
        result = cli_runner.invoke(cli, ["--interactive"], input="1\n\nq\n")
        assert result.exit_code == 0, result.output
        assert "Next Action Suggestion" in result.output
        assert "Press Enter to continue..." in result.output
        assert result.output.count("Git Workflow Helper") == 2

    def test_setup_prompt_hides_empty_default(self, cli_runner, in_local):
        result = cli_runner.invoke(cli, ["--interactive", "config"], input="\n\n\n\n")
        assert result.exit_code == 0, result.output
        assert "[]" not in result.output

    def test_first_run_welcome(self, cli_runner, in_local):
        config_path(in_local.local.git_dir).unlink()
        result = cli_runner.invoke(cli, ["--interactive"], input="\n\n\n\nq\n")
        assert result.exit_code == 0, result.output
        assert "Welcome! Config file not found." in result.output
        assert config_path(in_local.local.git_dir).is_file()
