"""
Repository state detection.

Nothing here is cached: the workflow calls detect_state() before every
command (and every menu iteration) and passes the resulting RepoState to the
operations that need it.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union
from urllib.parse import urlparse

import git
from git import GitCommandError, Repo

from forkflow.config import WorkflowConfig, WorkflowDefaults
from forkflow.errors import ForkflowError, MissingRemoteError, NotARepositoryError

DETACHED_HEAD = "HEAD"

# SCP-like SSH syntax: git@github.com:owner/repo.git
_SCP_URL = re.compile(r'^(?:[^@/]+@)?([^:/]+):/?([^/]+)/([^/]+?)(?:\.git)?/?$')


@dataclass(frozen=True)
class RemoteInfo:
    """Host and owner/repo parsed from a remote URL."""
    host: str
    owner: str
    repo: str

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def web_url(self) -> str:
        return f"https://{self.host}/{self.owner}/{self.repo}"


@dataclass(frozen=True)
class RepoState:
    """
    Everything the workflow knows about the repository at one point in time.

    ``notices`` holds ``(level, message)`` pairs produced while detecting the
    state (missing upstream, auto-detected main branch) for the caller to
    print.
    """
    root: Path
    git_dir: Path
    config: WorkflowConfig
    current_branch: str
    main_branch: str
    origin_url: str
    upstream_url: str
    is_dirty: bool
    has_untracked: bool
    is_protected: bool
    notices: Tuple[Tuple[str, str], ...] = field(default=())

    @property
    def fork_remote(self) -> str:
        return self.config.fork_remote

    @property
    def upstream_remote(self) -> str:
        return self.config.upstream_remote

    @property
    def has_upstream(self) -> bool:
        return bool(self.upstream_url)

    @property
    def upstream_main(self) -> str:
        return f"{self.upstream_remote}/{self.main_branch}"

    @property
    def is_detached(self) -> bool:
        return self.current_branch == DETACHED_HEAD

    @property
    def can_commit(self) -> bool:
        return self.is_dirty or self.has_untracked


@dataclass
class Divergence:
    """How HEAD relates to a base ref."""
    ahead: List[git.Commit]
    behind: int
    merge_base_is_head: bool

    @property
    def ahead_count(self) -> int:
        return len(self.ahead)

    @property
    def even(self) -> bool:
        return not self.ahead and self.behind == 0


# ========== Repository Access ==========

def open_repo(path: Optional[Union[str, Path]] = None) -> Repo:
    """
    Open the repository containing ``path`` (default: the current directory).

    Bash equivalent:
        git rev-parse --is-inside-work-tree

    Raises:
        NotARepositoryError: If path is not inside a Git work tree
    """
    try:
        repo = Repo(path or Path.cwd(), search_parent_directories=True)
    except (git.InvalidGitRepositoryError, git.NoSuchPathError):
        raise NotARepositoryError(str(path) if path else None)

    if repo.bare:
        raise NotARepositoryError(repo.git_dir)
    return repo


def get_current_branch(repo: Repo) -> str:
    """
    Bash equivalent:
        git rev-parse --abbrev-ref HEAD
    """
    try:
        return repo.active_branch.name
    except TypeError:
        # HEAD is detached
        return DETACHED_HEAD


def get_remote_url(repo: Repo, name: str) -> str:
    """
    URL of a remote, or an empty string when it does not exist.

    Bash equivalent:
        git config --get "remote.{name}.url"
    """
    if name not in repo.remotes:
        return ""
    reader = repo.config_reader()
    return reader.get_value(f'remote "{name}"', "url", default="") or ""


def ref_exists(repo: Repo, ref: str) -> bool:
    """
    Bash equivalent:
        git show-ref --verify --quiet "{ref}"
    """
    try:
        repo.git.show_ref("--verify", "--quiet", ref)
        return True
    except GitCommandError:
        return False


def is_protected_branch(branch: str, main_branch: str) -> bool:
    """Both the configured main branch and ``master`` are protected."""
    return branch in (main_branch, WorkflowDefaults.FALLBACK_MAIN_BRANCH)


def detect_state(repo: Repo, config: WorkflowConfig) -> RepoState:
    """
    Derive the runtime state of the repository.

    Bash equivalents:
        git rev-parse --abbrev-ref HEAD
        git config --get remote.origin.url
        git config --get remote.upstream.url
        git show-ref --verify --quiet refs/remotes/upstream/main
        git diff --quiet && git diff --cached --quiet

    Raises:
        MissingRemoteError: If the fork remote is not configured
    """
    notices: List[Tuple[str, str]] = []

    origin_url = get_remote_url(repo, config.fork_remote)
    if not origin_url:
        raise MissingRemoteError(config.fork_remote, "Please add it or run 'init'.")

    upstream_url = get_remote_url(repo, config.upstream_remote)
    if not upstream_url:
        notices.append(("warning", f"Remote '{config.upstream_remote}' not found. "
                                   "This script works best with a fork."))
        notices.append(("warning", f"Please add the upstream remote: git remote add "
                                   f"{config.upstream_remote} <upstream_repo_url>"))

    main_branch = config.main_branch
    if not ref_exists(repo, f"refs/remotes/{config.upstream_remote}/{main_branch}"):
        fallback = WorkflowDefaults.FALLBACK_MAIN_BRANCH
        if ref_exists(repo, f"refs/remotes/{config.upstream_remote}/{fallback}"):
            main_branch = fallback
            notices.append(("info", f"Auto-detected main branch as '{fallback}'"))
        elif upstream_url:
            # Without an upstream this is expected, so stay quiet
            notices.append(("warning", f"Could not find '{main_branch}' or '{fallback}' on "
                                       f"upstream. Using '{main_branch}' as default."))

    current_branch = get_current_branch(repo)

    return RepoState(
        root=Path(repo.working_tree_dir),
        git_dir=Path(repo.git_dir),
        config=config,
        current_branch=current_branch,
        main_branch=main_branch,
        origin_url=origin_url,
        upstream_url=upstream_url,
        is_dirty=repo.is_dirty(index=True, working_tree=True, untracked_files=False),
        has_untracked=bool(repo.untracked_files),
        is_protected=is_protected_branch(current_branch, main_branch),
        notices=tuple(notices),
    )


# ========== Branch Names ==========

def sanitize_branch_name(name: str) -> str:
    """
    Turn free text into a branch name.

    Lowercases, turns whitespace into hyphens (squeezing runs of hyphens to
    one), then drops every character outside ``[a-z0-9-/]``.

    Bash equivalent:
        echo "$name" | tr '[:upper:]' '[:lower:]' | tr -s '[:space:]' '-' | sed 's/[^a-z0-9\\-\\/]//g'

    >>> sanitize_branch_name("Fix Login  Page!")
    'fix-login-page'
    """
    name = name.strip().lower()
    name = re.sub(r"\s", "-", name)
    name = re.sub(r"-{2,}", "-", name)
    return re.sub(r"[^a-z0-9\-/]", "", name)


# ========== Remote URLs ==========

def parse_remote_url(url: str) -> Optional[RemoteInfo]:
    """
    Parse host, owner and repo out of an SSH or HTTPS remote URL.

    Returns None for URLs without a host (local paths) or without an
    owner/repo path.
    """
    if not url:
        return None

    if "://" in url:
        parsed = urlparse(url)
        host = parsed.hostname
        parts = [p for p in parsed.path.split("/") if p]
        if not host or len(parts) < 2:
            return None
        owner, repo = parts[-2], parts[-1]
        if repo.endswith(".git"):
            repo = repo[:-4]
        return RemoteInfo(host=host, owner=owner, repo=repo)

    match = _SCP_URL.match(url)
    if match:
        host, owner, repo = match.groups()
        return RemoteInfo(host=host, owner=owner, repo=repo)
    return None


def compare_url(upstream_url: str, base_branch: str, head_owner: str, head_branch: str) -> str:
    """
    Build the web URL that opens a new pull request.

    >>> compare_url("git@github.com:acme/widgets.git", "main", "octocat", "fix/login")
    'https://github.com/acme/widgets/compare/main...octocat:fix/login'
    """
    info = parse_remote_url(upstream_url)
    if info is None:
        raise ForkflowError(f"Cannot determine the upstream repository from URL '{upstream_url}'")
    return f"{info.web_url}/compare/{base_branch}...{head_owner}:{head_branch}"


# ========== Commit Comparison ==========

def branch_divergence(repo: Repo, base_ref: str, head: str = "HEAD") -> Divergence:
    """
    Compare ``head`` against ``base_ref``.

    Bash equivalents:
        git merge-base {base_ref} HEAD
        git rev-list --count {base_ref}..HEAD  # ahead
        git rev-list --count HEAD..{base_ref}  # behind
    """
    ahead = list(repo.iter_commits(f"{base_ref}..{head}"))
    behind = sum(1 for _ in repo.iter_commits(f"{head}..{base_ref}"))
    merge_base_is_head = repo.is_ancestor(head, base_ref)
    return Divergence(ahead=ahead, behind=behind, merge_base_is_head=merge_base_is_head)
