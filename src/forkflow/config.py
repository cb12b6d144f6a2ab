"""
Workflow configuration.

Defaults live in WorkflowDefaults; each repository can override them with a
small key/value file kept inside its .git directory so the working tree
stays clean.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Union

# ==================== WORKFLOW DEFAULTS ====================

class WorkflowDefaults:
    """
    Tool-wide defaults. A repository's forkflowrc overrides the first four.
    """

    # Remote names (standard Git convention for a fork)
    FORK_REMOTE = "origin"  # Your fork
    UPSTREAM_REMOTE = "upstream"  # Original repo
    MAIN_BRANCH = "main"
    GITHUB_USER = ""

    # Always treated as protected, whatever MAIN_BRANCH says
    FALLBACK_MAIN_BRANCH = "master"

    # Config file, stored inside the git dir
    CONFIG_FILENAME = "forkflowrc"
    CONFIG_HEADER = "# Git Workflow Config"
    GITIGNORE_ENTRY = ".git/forkflowrc"

    # GitHub settings
    GITHUB_HOST = "github.com"
    PLACEHOLDER_USER = "YOUR_USERNAME"

    # Used when committing non-interactively without a message
    DEFAULT_COMMIT_MESSAGE = "Auto-commit by forkflow"

# ==================== END DEFAULTS ====================

# Order matters: it is the order keys are written in.
CONFIG_KEYS = {
    "ORIGIN_REMOTE": "fork_remote",
    "UPSTREAM_REMOTE": "upstream_remote",
    "MAIN_BRANCH": "main_branch",
    "GITHUB_USER": "github_user",
}

_ASSIGNMENT = re.compile(r'^\s*(?:export\s+)?([A-Z_][A-Z0-9_]*)\s*=\s*(.*?)\s*$')


@dataclass
class WorkflowConfig:
    """The persisted per-repository settings."""
    fork_remote: str = WorkflowDefaults.FORK_REMOTE
    upstream_remote: str = WorkflowDefaults.UPSTREAM_REMOTE
    main_branch: str = WorkflowDefaults.MAIN_BRANCH
    github_user: str = WorkflowDefaults.GITHUB_USER

    def to_dict(self) -> Dict[str, str]:
        return {key: getattr(self, attr) for key, attr in CONFIG_KEYS.items()}


def config_path(git_dir: Union[str, Path]) -> Path:
    """Location of the config file for a repository's git dir."""
    return Path(git_dir) / WorkflowDefaults.CONFIG_FILENAME


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    return value


def load_config(path: Union[str, Path]) -> WorkflowConfig:
    """
    Read a config file.

    A missing file, and any key missing from the file, fall back to the
    defaults. Comments, blank lines and unknown keys are skipped.

    Args:
        path: Path to the forkflowrc file

    Returns:
        WorkflowConfig with the stored values
    """
    config = WorkflowConfig()
    path = Path(path)
    if not path.is_file():
        return config

    for line in path.read_text().splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        match = _ASSIGNMENT.match(stripped)
        if not match:
            continue
        key, raw = match.groups()
        attr = CONFIG_KEYS.get(key)
        if attr:
            setattr(config, attr, _unquote(raw))

    return config


def save_config(config: WorkflowConfig, path: Union[str, Path]) -> Path:
    """
    Write a config file, replacing whatever was there.

    Bash equivalent:
        echo "# Git Workflow Config" > .git/forkflowrc
        echo "ORIGIN_REMOTE=\"origin\"" >> .git/forkflowrc
        ...
    """
    path = Path(path)
    lines = [WorkflowDefaults.CONFIG_HEADER]
    for key, value in config.to_dict().items():
        escaped = value.replace('"', "")
        lines.append(f'{key}="{escaped}"')
    path.write_text("\n".join(lines) + "\n")
    return path


def ensure_gitignored(root: Union[str, Path], entry: str = WorkflowDefaults.GITIGNORE_ENTRY) -> bool:
    """
    Append an entry to an existing .gitignore unless it is already there.

    Bash equivalent:
        grep -q "{entry}" .gitignore || echo -e "\\n# Git workflow config\\n{entry}" >> .gitignore

    Returns:
        True if the entry was added
    """
    gitignore = Path(root) / ".gitignore"
    if not gitignore.is_file():
        return False

    content = gitignore.read_text()
    if entry in content:
        return False

    with open(gitignore, "a") as f:
        f.write(f"\n# Git workflow config\n{entry}\n")
    return True
