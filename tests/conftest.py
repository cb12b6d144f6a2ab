"""Pytest fixtures for forkflow tests"""
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path

import git
import pytest

from forkflow.config import WorkflowConfig, config_path, save_config
from forkflow.errors import CommandFailedError
from forkflow.ffw import ForkWorkflowManager
from forkflow.runner import CommandRunner


def configure_identity(repo):
    """Give a repository a committer identity."""
    with repo.config_writer() as config:
        config.set_value("user", "name", "Test User")
        config.set_value("user", "email", "test@example.com")
        config.set_value("commit", "gpgsign", "false")


def commit_file(repo, name, content, message):
    """Write a file in the work tree and commit it."""
    path = Path(repo.working_tree_dir) / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    repo.index.add([name])
    return repo.index.commit(message)


@dataclass
class ForkSetup:
    """An upstream bare repo, a fork of it, and a local clone of the fork."""
    upstream_path: Path
    fork_path: Path
    local: git.Repo
    contributor: git.Repo

    @property
    def local_path(self) -> Path:
        return Path(self.local.working_tree_dir)

    def upstream_commit(self, name="upstream.txt", content="upstream change\n",
                        message="Upstream change"):
        """Land a commit on upstream main, as another contributor would."""
        commit = commit_file(self.contributor, name, content, message)
        self.contributor.git.push("origin", "main")
        return commit

    def upstream_head(self) -> str:
        return git.Repo(self.upstream_path).commit("main").hexsha

    def fork_head(self, branch="main") -> str:
        return git.Repo(self.fork_path).commit(branch).hexsha

    def fork_has_branch(self, branch) -> bool:
        return branch in git.Repo(self.fork_path).heads


class FakeRunner(CommandRunner):
    """CommandRunner that records commands instead of executing them."""

    def __init__(self, tools=("git",), returncodes=None, outputs=None):
        super().__init__()
        self.tools = set(tools)
        self.returncodes = returncodes or {}
        self.outputs = outputs or {}
        self.calls = []

    def which(self, tool):
        return tool in self.tools

    def _lookup(self, table, args, default):
        value = default
        for prefix, candidate in table.items():
            if tuple(args[:len(prefix)]) == prefix:
                value = candidate
        return value

    def _execute(self, entry, args, check, capture_output):
        self.calls.append(list(args))
        entry.executed = True
        returncode = self._lookup(self.returncodes, args, 0)
        stdout = self._lookup(self.outputs, args, "")
        entry.returncode = returncode
        if check and returncode != 0:
            raise CommandFailedError(entry.command, returncode, "")
        return subprocess.CompletedProcess(list(args), returncode, stdout, "")

    def called(self, *prefix):
        return [call for call in self.calls if tuple(call[:len(prefix)]) == prefix]


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def git_repo(temp_dir):
    """A standalone repository with a fake GitHub fork remote and one commit on main."""
    repo_path = temp_dir / "test_repo"
    repo_path.mkdir()

    repo = git.Repo.init(repo_path)
    configure_identity(repo)
    commit_file(repo, "README.md", "# Test Repository\n", "Initial commit")
    repo.git.branch("-M", "main")
    repo.create_remote("origin", "git@github.com:octocat/widgets.git")

    yield repo

    repo.close()


@pytest.fixture
def fork_setup(temp_dir):
    """Upstream and fork bare repos on disk, with a local clone wired to both."""
    seed_path = temp_dir / "seed"
    upstream_path = temp_dir / "upstream.git"
    fork_path = temp_dir / "fork.git"
    local_path = temp_dir / "local"

    seed = git.Repo.init(seed_path)
    configure_identity(seed)
    commit_file(seed, "README.md", "# Widgets\n", "Initial commit")
    seed.git.branch("-M", "main")

    upstream = git.Repo.init(upstream_path, bare=True)
    upstream.git.symbolic_ref("HEAD", "refs/heads/main")
    seed.create_remote("origin", str(upstream_path))
    seed.git.push("origin", "main")

    git.Repo.clone_from(str(upstream_path), str(fork_path), bare=True)

    local = git.Repo.clone_from(str(fork_path), str(local_path))
    configure_identity(local)
    local.create_remote("upstream", str(upstream_path)).fetch()

    save_config(WorkflowConfig(), config_path(local.git_dir))

    setup = ForkSetup(upstream_path=upstream_path, fork_path=fork_path,
                      local=local, contributor=seed)
    yield setup

    local.close()
    seed.close()


@pytest.fixture
def manager(fork_setup):
    """A non-interactive manager working on the local clone."""
    return ForkWorkflowManager(runner=CommandRunner(), interactive=False,
                               path=fork_setup.local_path)


@pytest.fixture
def feature_branch(fork_setup):
    """Check out a feature branch with one commit on top of main."""
    local = fork_setup.local
    local.git.checkout("-b", "fix/login")
    commit_file(local, "login.py", "print('login')\n", "Fix login")
    return "fix/login"


@pytest.fixture
def fake_runner():
    """Factory for FakeRunner instances."""
    return FakeRunner
