"""
forkflow - Fork-based Pull Request Workflow
===========================================

Guides a clean fork-based PR flow: sync main from upstream, branch, commit,
push to your fork, open the PR, and clean up once it is merged.

Every operation is a thin, guarded sequence of git (and optionally gh)
commands. Each Git operation documents its bash equivalent for transparency.
"""

import sys
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional, Union

import click
from git import Repo
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from forkflow import __version__
from forkflow.config import (
    WorkflowConfig,
    WorkflowDefaults,
    config_path,
    ensure_gitignored,
    load_config,
    save_config,
)
from forkflow.errors import (
    AbortedError,
    CommandFailedError,
    DirtyTreeError,
    ForkflowError,
    InvalidBranchNameError,
    MissingRemoteError,
    ProtectedBranchError,
)
from forkflow.runner import HISTORY_FILE, CommandRunner, console
from forkflow.state import (
    DETACHED_HEAD,
    RepoState,
    branch_divergence,
    compare_url,
    detect_state,
    is_protected_branch,
    open_repo,
    parse_remote_url,
    ref_exists,
    sanitize_branch_name,
)

PROG = "ffw"

REBASE_HINT = "Rebase failed! Fix conflicts and run 'git rebase --continue' or 'git rebase --abort'."

HELP_TEXT = f"""Usage: {PROG} [command] [args]

  A tool to manage a fork-based Git PR workflow.

  Commands:
    (no args)     Show interactive menu
    init/config   Run first-time setup (or re-configure)
    status        Show status overview and next-action suggestion
    sync          Fetch and rebase local main from upstream/main
    new <name>    Create a new feature branch (syncs main first)
    commit [msg]  Stage and commit changes (interactive if no msg)
    push          Push current branch to fork (origin)
    pr            Create a Pull Request (uses 'gh' or prints URL)
    clean [name]  Delete branch locally and on fork (default: current)
    help          Show this help message

  Global options (before the command):
    --debug, -d        Show every git/gh command
    --dry-run, -n      Preview commands without execution
    --force, -f        Continue on a dirty working tree without prompting
    --no-interactive   Never prompt, even in a terminal"""


class Command(Enum):
    """Everything the CLI and the menu can ask the workflow to do."""
    CONFIGURE = "configure"
    STATUS = "status"
    SYNC = "sync"
    NEW = "new"
    COMMIT = "commit"
    PUSH = "push"
    PR = "pr"
    CLEAN = "clean"
    HELP = "help"
    QUIT = "quit"


@dataclass(frozen=True)
class MenuItem:
    """One line of the interactive menu."""
    key: str
    label: str
    command: Command
    style: str
    feature_only: bool = False


MENU_ITEMS = (
    MenuItem("1", "Show Status / Suggest Action", Command.STATUS, "cyan"),
    MenuItem("2", "Start New Feature/Fix...", Command.NEW, "green"),
    MenuItem("3", "Sync Main from Upstream", Command.SYNC, "yellow"),
    MenuItem("4", "Commit Changes...", Command.COMMIT, "blue", feature_only=True),
    MenuItem("5", "Push Branch to Fork", Command.PUSH, "magenta", feature_only=True),
    MenuItem("6", "Create Pull Request", Command.PR, "green", feature_only=True),
    MenuItem("7", "Clean Up Branch (After Merge)", Command.CLEAN, "red", feature_only=True),
    MenuItem("8", "Run Setup/Configuration", Command.CONFIGURE, "cyan"),
    MenuItem("q", "Quit", Command.QUIT, "default"),
)


def is_interactive_terminal() -> bool:
    """Prompting is only allowed when both stdin and stdout are terminals."""
    return sys.stdin.isatty() and sys.stdout.isatty()


class ForkWorkflowManager:
    """
    Runs the fork-based PR workflow.

    Each public operation starts from a freshly detected RepoState; nothing
    about the repository is remembered between operations.
    """

    def __init__(self, runner: Optional[CommandRunner] = None, interactive: bool = False,
                 force: bool = False, path: Optional[Union[str, Path]] = None):
        """
        Args:
            runner: Executes external commands (a fake one in tests)
            interactive: Whether prompts may be shown
            force: Continue on a dirty tree without prompting
            path: Any directory inside the repository (default: cwd)
        """
        self.runner = runner or CommandRunner()
        self.interactive = interactive
        self.force = force
        self.path = Path(path) if path else None
        self.repo: Optional[Repo] = None
        self._announced = set()

    @property
    def dry_run(self) -> bool:
        return self.runner.dry_run

    # ========== State ==========

    def _open(self) -> Repo:
        self.repo = open_repo(self.path)
        if self.runner.cwd is None:
            self.runner.cwd = self.repo.working_tree_dir
        return self.repo

    def config_file(self) -> Path:
        return config_path(self._open().git_dir)

    def has_config(self) -> bool:
        return self.config_file().is_file()

    def history_file(self) -> Path:
        """The command history lives next to the config, outside the work tree."""
        if self.repo is None:
            return Path(HISTORY_FILE)
        return Path(self.repo.git_dir) / HISTORY_FILE

    def save_history(self) -> None:
        self.runner.save_history(str(self.history_file()))

    def refresh(self) -> RepoState:
        """
        Re-read config and re-detect repository state.

        Bash equivalents:
            git rev-parse --is-inside-work-tree
            source .git/forkflowrc
            git rev-parse --abbrev-ref HEAD
            git config --get remote.{origin,upstream}.url
        """
        repo = self._open()
        config = load_config(config_path(repo.git_dir))
        state = detect_state(repo, config)

        for level, message in state.notices:
            if (level, message) in self._announced:
                continue
            self._announced.add((level, message))
            if level == "warning":
                console.print(f"[yellow]⚠ {escape(message)}[/yellow]")
            else:
                console.print(f"[cyan]{escape(message)}[/cyan]")

        return state

    def remote_branch_exists(self, state: RepoState, branch: str) -> bool:
        """
        Bash equivalent:
            git ls-remote --exit-code --heads {fork} {branch}
        """
        return self.runner.succeeds(
            ["git", "ls-remote", "--exit-code", "--heads", state.fork_remote, branch],
            "Check if branch exists on fork"
        )

    def head_owner(self, state: RepoState) -> str:
        """GitHub user owning the PR head: configured user, else fork URL owner."""
        if state.config.github_user:
            return state.config.github_user
        info = parse_remote_url(state.origin_url)
        if info:
            return info.owner
        return WorkflowDefaults.PLACEHOLDER_USER

    def _ask(self, text: str, default: str) -> str:
        if not self.interactive:
            return default
        return click.prompt(click.style(f"? {text}", fg="magenta"), default=default,
                            show_default=bool(default))

    def _confirm(self, text: str, default: bool = False) -> bool:
        if not self.interactive:
            return default
        return click.confirm(click.style(f"? {text}", fg="magenta"), default=default)

    # ========== Guardrails ==========

    def guard_dirty_tree(self, state: RepoState) -> None:
        """
        Stop (or stash) when the working tree has uncommitted changes.

        Bash equivalents:
            git diff --quiet && git diff --cached --quiet
            git stash  # if the operator picks (s)

        Raises:
            AbortedError: Operator chose to abort
            DirtyTreeError: Not interactive and not forced
        """
        if not state.is_dirty:
            return

        console.print("[yellow]⚠ Your working tree is dirty (uncommitted changes).[/yellow]")

        if not self.interactive:
            if self.force:
                console.print("[yellow]⚠ Continuing with a dirty tree (--force).[/yellow]")
                return
            raise DirtyTreeError()

        action = click.prompt(
            click.style("? Press (s) to stash, (a) to abort, (c) to continue anyway.", fg="magenta"),
            default="a",
        ).strip().lower()

        if action == "s":
            self.runner.run(["git", "stash"], "Stash uncommitted changes")
            console.print("[green]✓ Changes stashed.[/green]")
        elif action == "c":
            console.print("[yellow]⚠ Continuing with a dirty tree.[/yellow]")
        else:
            raise AbortedError("Aborted due to dirty working tree.")

    def guard_on_main(self, state: RepoState) -> None:
        """
        Refuse feature-branch operations on the protected branch.

        Raises:
            ProtectedBranchError: Current branch is main (or master)
        """
        if state.is_protected:
            raise ProtectedBranchError(state.main_branch)
        if state.is_detached:
            raise ForkflowError("HEAD is detached. Check out a feature branch first.")

    # ========== Setup ==========

    def configure(self, fork_remote: Optional[str] = None, upstream_remote: Optional[str] = None,
                  main_branch: Optional[str] = None,
                  github_user: Optional[str] = None) -> WorkflowConfig:
        """
        Ask for the four settings and write them, replacing any previous file.

        Bash equivalents:
            echo 'ORIGIN_REMOTE="origin"' > .git/forkflowrc
            ...
            echo -e "\\n# Git workflow config\\n.git/forkflowrc" >> .gitignore

        Prompts use the tool defaults, not the values from a previous run.
        """
        repo = self._open()
        console.print("[cyan]⚙ Running initial setup...[/cyan]")

        config = WorkflowConfig(
            fork_remote=fork_remote or self._ask("Name of your fork remote?",
                                                 WorkflowDefaults.FORK_REMOTE),
            upstream_remote=upstream_remote or self._ask("Name of the upstream remote?",
                                                         WorkflowDefaults.UPSTREAM_REMOTE),
            main_branch=main_branch or self._ask("Default main branch name?",
                                                 WorkflowDefaults.MAIN_BRANCH),
            github_user=github_user if github_user is not None else self._ask(
                "Your GitHub username (for PR URL fallback):", WorkflowDefaults.GITHUB_USER),
        )

        path = config_path(repo.git_dir)
        root = Path(repo.working_tree_dir)
        if self.dry_run:
            console.print(f"[yellow]\\[DRY-RUN][/yellow] Would write configuration to {path}")
            return config

        save_config(config, path)
        console.print(f"[green]✓ Configuration saved to {path}[/green]")

        if ensure_gitignored(root):
            console.print(f"[cyan]Added {WorkflowDefaults.GITIGNORE_ENTRY} to .gitignore[/cyan]")

        return config

    # ========== Status ==========

    def status(self) -> None:
        """
        Print branch, remotes, working tree and commit status, then suggest
        the next step.

        Bash equivalents:
            git status -s
            git merge-base upstream/main HEAD
            git rev-list --count upstream/main..HEAD
            git log --oneline --graph --decorate -n N upstream/main..HEAD
            git ls-remote --exit-code --heads origin {branch}
        """
        state = self.refresh()

        console.print(Panel.fit("[bold]📊 Git Workflow Status[/bold]", style="cyan"))

        table = Table(show_header=False, box=None)
        table.add_column("Property", style="cyan")
        table.add_column("Value")
        table.add_row("Branch:", f"[green]{state.current_branch}[/green]")
        if state.is_protected:
            table.add_row("", "[yellow]You are on the main branch.[/yellow]")
        table.add_row(f"Origin ({state.fork_remote}):", f"[blue]{state.origin_url}[/blue]")
        if state.has_upstream:
            table.add_row(f"Upstream ({state.upstream_remote}):", f"[blue]{state.upstream_url}[/blue]")
        else:
            table.add_row(f"Upstream ({state.upstream_remote}):", "[red]Not Configured[/red]")
        console.print(table)

        console.print("\nWorking Tree:")
        if state.can_commit:
            if state.is_dirty:
                console.print("[yellow]  ⚠ You have uncommitted changes.[/yellow]")
            else:
                console.print("[yellow]  ⚠ You have untracked files.[/yellow]")
            result = self.runner.capture(["git", "status", "-s"], "Show short status")
            for line in result.stdout.splitlines():
                console.print(f"    {escape(line)}")
        else:
            console.print("[green]  ✓ Working tree is clean.[/green]")

        if not state.is_protected and state.has_upstream:
            self._print_commit_status(state)

        console.print("\nNext Action Suggestion:")
        if state.can_commit:
            console.print(f"  Run '[cyan]{PROG} commit[/cyan]' to save your changes.")
        elif state.is_detached:
            console.print("  HEAD is detached. Run '[cyan]git checkout <branch>[/cyan]' to continue work.")
        elif not state.is_protected:
            if not self.remote_branch_exists(state, state.current_branch):
                console.print(f"  Run '[cyan]{PROG} push[/cyan]' to push your branch.")
            else:
                console.print(f"  Run '[cyan]{PROG} pr[/cyan]' to create a Pull Request.")
        else:
            console.print(f"  Run '[cyan]{PROG} new <branch-name>[/cyan]' to start new work.")
        console.print("-----------------------------------")

    def _print_commit_status(self, state: RepoState) -> None:
        base = state.upstream_main
        console.print("\nCommit Status:")

        if not ref_exists(self.repo, f"refs/remotes/{base}"):
            console.print(f"  [yellow]'{base}' has not been fetched yet. Run '{PROG} sync'.[/yellow]")
            return

        divergence = branch_divergence(self.repo, base)
        if divergence.even:
            console.print(f"  Your branch is even with '{base}'.")
            return

        if divergence.ahead_count:
            console.print(f"  You have [green]{divergence.ahead_count} commit(s)[/green] ahead of '{base}'.")
            result = self.runner.capture(
                ["git", "log", "--oneline", "--graph", "--decorate",
                 "-n", str(divergence.ahead_count), f"{base}..HEAD"],
                "List commits ahead of upstream"
            )
            for line in result.stdout.splitlines():
                console.print(f"    {escape(line)}")
        if divergence.behind:
            console.print(f"  Your branch is [yellow]{divergence.behind} commit(s)[/yellow] behind '{base}'.")

    # ========== Sync ==========

    def sync(self, push: Optional[bool] = None) -> None:
        """
        Rebase local main onto upstream main.

        Bash equivalents:
            git checkout main
            git fetch upstream
            git rebase upstream/main
            git push origin main  # optional

        Args:
            push: Push main to the fork afterwards; None asks (interactive only)
        """
        state = self.refresh()
        self._sync_main(state, push)

    def _sync_main(self, state: RepoState, push: Optional[bool] = None) -> None:
        main = state.main_branch
        console.print(f"[cyan]⬇ Syncing '{main}' from '{state.upstream_remote}'...[/cyan]")
        if not state.has_upstream:
            raise MissingRemoteError(state.upstream_remote, "Upstream remote not set.")

        self.guard_dirty_tree(state)

        if state.current_branch != main:
            console.print(f"Switching to '{main}' branch...")
            self.runner.run(["git", "checkout", main], "Switch to main branch")

        console.print(f"Fetching from '{state.upstream_remote}'...")
        self.runner.run(["git", "fetch", state.upstream_remote], "Fetch upstream")

        console.print(f"Rebasing local '{main}' onto '{state.upstream_main}'...")
        self._rebase(state.upstream_main)

        console.print(f"[green]✓ '{main}' is now in sync with '{state.upstream_main}'.[/green]")

        if push is None:
            push = self._confirm(f"Push updated '{main}' to '{state.fork_remote}'?", default=False)
        if push:
            console.print(f"Pushing to '{state.fork_remote}/{main}'...")
            self.runner.run(["git", "push", state.fork_remote, main], "Push main to fork")

    def _rebase(self, onto: str) -> None:
        try:
            self.runner.run(["git", "rebase", onto], f"Rebase onto {onto}")
        except CommandFailedError as e:
            raise CommandFailedError(e.command, e.returncode, e.stderr, hint=REBASE_HINT)

    # ========== Branching ==========

    def new_branch(self, name: Optional[str] = None) -> str:
        """
        Sync main, then create and check out a feature branch.

        Bash equivalents:
            git check-ref-format --branch {name}
            git checkout -b {name}

        Args:
            name: Free-text branch name; it is sanitized first

        Returns:
            The sanitized branch name
        """
        state = self.refresh()

        if not name:
            if not self.interactive:
                raise ForkflowError("Branch name not provided.")
            name = click.prompt(click.style(
                "? Enter new branch name (e.g., 'fix/login' or 'feature/dashboard'):", fg="magenta"))

        branch = sanitize_branch_name(name)
        if not branch:
            raise InvalidBranchNameError(name)
        if not self.runner.succeeds(["git", "check-ref-format", "--branch", branch],
                                    "Validate branch name"):
            raise InvalidBranchNameError(branch)
        if branch in self.repo.heads:
            raise ForkflowError(f"Branch '{branch}' already exists. Check it out with: git checkout {branch}")

        console.print(f"Syncing '{state.main_branch}' before branching...")
        self._sync_main(state)

        console.print(f"[cyan]🌿 Creating and checking out new branch: '{branch}'[/cyan]")
        self.runner.run(["git", "checkout", "-b", branch], "Create feature branch")

        console.print(f"[green]✓ Switched to new branch '{branch}' based on '{state.main_branch}'.[/green]")
        return branch

    # ========== Commit ==========

    def commit(self, message: Optional[str] = None, amend: Optional[bool] = None) -> bool:
        """
        Stage and commit changes.

        Bash equivalents:
            git status -s
            git add .          # or: git add -p
            git commit -m "{message}"
            git commit         # opens $EDITOR
            git commit --amend

        Args:
            message: Commit message; prompted for (interactive) or defaulted
            amend: Amend the previous commit; None asks (interactive only)

        Returns:
            True if a commit was made
        """
        state = self.refresh()

        if not state.can_commit:
            console.print("[yellow]⚠ No changes to commit.[/yellow]")
            return False

        console.print("[cyan]Changes detected:[/cyan]")
        result = self.runner.capture(["git", "status", "-s"], "Show short status")
        for line in result.stdout.splitlines():
            console.print(f"  {escape(line)}")

        if self.interactive:
            made = self._commit_interactive(message, amend)
        else:
            made = self._commit_batch(message, bool(amend))

        if made:
            console.print("[green]✓ 📝 Changes committed.[/green]")
        return made

    def _commit_interactive(self, message: Optional[str], amend: Optional[bool]) -> bool:
        action = click.prompt(
            click.style("? Stage (a)ll, (i)nteractive, or (n)o?", fg="magenta"), default="a"
        ).strip().lower()

        if action == "i":
            console.print("[cyan]Entering interactive add. Stage your files, then exit patch mode.[/cyan]")
            self.runner.run(["git", "add", "-p"], "Stage hunks interactively", capture_output=False)
            if self.runner.succeeds(["git", "diff", "--cached", "--quiet"], "Check staged changes"):
                console.print("[yellow]⚠ No files were staged. Commit aborted.[/yellow]")
                return False
        elif action == "n":
            console.print("[yellow]⚠ Commit aborted.[/yellow]")
            return False
        else:
            console.print("Staging all changes...")
            self.runner.run(["git", "add", "."], "Stage all changes")

        if amend is None:
            amend = click.confirm(click.style("? Amend previous commit?", fg="magenta"), default=False)
        if amend:
            args = ["git", "commit", "--amend"]
            if message:
                args += ["-m", message]
            self.runner.run(args, "Amend previous commit", capture_output=False)
            return True

        if message is None:
            message = click.prompt(
                click.style("? Enter commit message (or press Enter to open $EDITOR):", fg="magenta"),
                default="", show_default=False,
            )

        if message:
            self.runner.run(["git", "commit", "-m", message], "Commit staged changes")
        else:
            self.runner.run(["git", "commit"], "Commit with $EDITOR", capture_output=False)
        return True

    def _commit_batch(self, message: Optional[str], amend: bool) -> bool:
        console.print("Staging all changes for non-interactive commit...")
        self.runner.run(["git", "add", "."], "Stage all changes")

        if amend:
            args = ["git", "commit", "--amend"]
            args += ["-m", message] if message else ["--no-edit"]
            self.runner.run(args, "Amend previous commit")
            return True

        if not message:
            message = WorkflowDefaults.DEFAULT_COMMIT_MESSAGE
            console.print(f"[yellow]⚠ No commit message provided. Using default: '{message}'[/yellow]")
        self.runner.run(["git", "commit", "-m", message], "Commit staged changes")
        return True

    # ========== Push & Pull Request ==========

    def push(self) -> None:
        """
        Push the current feature branch to the fork.

        Bash equivalents:
            git ls-remote --exit-code --heads origin {branch}
            git push origin {branch}                   # branch already on fork
            git push --set-upstream origin {branch}    # first push
        """
        state = self.refresh()
        self.guard_on_main(state)
        self._push_branch(state)

    def _push_branch(self, state: RepoState) -> None:
        branch = state.current_branch
        fork = state.fork_remote
        console.print(f"[cyan]⬆ Pushing '{branch}' to '{fork}'...[/cyan]")

        if self.remote_branch_exists(state, branch):
            console.print("Remote branch exists. Pushing updates.")
            self.runner.run(["git", "push", fork, branch], "Push branch")
        else:
            console.print("New branch. Setting upstream tracking and pushing.")
            self.runner.run(["git", "push", "--set-upstream", fork, branch], "Push and track branch")

        console.print(f"[green]✓ Branch '{branch}' pushed to '{fork}'.[/green]")

    def pull_request(self, web: bool = True) -> Optional[str]:
        """
        Open a pull request from the fork branch into upstream main.

        Bash equivalents:
            gh pr create --repo {owner/repo} --base main --head {user}:{branch} --web
            # without gh, print:
            # https://github.com/{owner/repo}/compare/main...{user}:{branch}

        Args:
            web: Let gh open the browser; otherwise create from commit info

        Returns:
            The PR or compare URL when one was printed, else None
        """
        state = self.refresh()
        self.guard_on_main(state)
        if not state.has_upstream:
            raise MissingRemoteError(state.upstream_remote, "Upstream remote not set. Cannot create PR.")

        if not self.remote_branch_exists(state, state.current_branch):
            console.print(f"[yellow]⚠ Branch not found on '{state.fork_remote}'. Pushing first...[/yellow]")
            self._push_branch(state)

        base = state.main_branch
        branch = state.current_branch
        owner = self.head_owner(state)

        console.print("[cyan]📬 Preparing to create Pull Request...[/cyan]")
        console.print(f"  Base: {state.upstream_remote}/{base}")
        console.print(f"  Head: {state.fork_remote}/{branch}")

        if not self.runner.which("gh"):
            console.print("[yellow]⚠ GitHub CLI ('gh') not found. Please install it for the best experience.[/yellow]")
            console.print("Please open this URL in your browser to create the PR:")
            url = compare_url(state.upstream_url, base, owner, branch)
            console.print(f"[blue]{url}[/blue]", soft_wrap=True)
            return url

        upstream = parse_remote_url(state.upstream_url)
        if upstream is None:
            raise ForkflowError(f"Cannot determine the upstream repository from URL '{state.upstream_url}'")

        head = branch if owner == WorkflowDefaults.PLACEHOLDER_USER else f"{owner}:{branch}"
        args = ["gh", "pr", "create", "--repo", upstream.slug, "--base", base, "--head", head]

        if web:
            console.print("GitHub CLI found. Creating PR (will open in browser)...")
            self.runner.run(args + ["--web"], "Open PR form in browser", capture_output=False)
            console.print("[green]✓ Opened PR in browser.[/green]")
            return None

        console.print("GitHub CLI found. Creating PR from commit messages...")
        result = self.runner.run(args + ["--fill"], "Create PR")
        url = result.stdout.strip() or None
        console.print("[green]✓ PR created successfully[/green]")
        if url:
            console.print(f"  URL: {url}", soft_wrap=True)
        return url

    # ========== Cleanup ==========

    def clean(self, branch: Optional[str] = None, assume_yes: bool = False) -> bool:
        """
        Delete a merged branch locally and on the fork.

        Bash equivalents:
            git checkout main
            git fetch upstream && git rebase upstream/main
            git branch -D {branch}
            git push origin --delete {branch}
            git remote prune origin

        Args:
            branch: Branch to delete (default: current branch)
            assume_yes: Skip the confirmation prompt

        Returns:
            True if cleanup ran, False if the operator declined
        """
        state = self.refresh()
        branch = branch or state.current_branch

        if is_protected_branch(branch, state.main_branch):
            raise ProtectedBranchError(branch, "delete")
        if branch == DETACHED_HEAD:
            raise ForkflowError("HEAD is detached. Name the branch to clean.")

        self.guard_dirty_tree(state)

        console.print(f"[cyan]🧹 This will delete branch '{branch}' locally and on '{state.fork_remote}'.[/cyan]")
        if not assume_yes and self.interactive:
            if not click.confirm(click.style(
                    "? Are you sure? (This assumes the PR was merged)", fg="magenta"), default=False):
                console.print("[yellow]⚠ Cleanup aborted.[/yellow]")
                return False

        main = state.main_branch
        console.print(f"Switching to '{main}' and syncing...")
        self.runner.run(["git", "checkout", main], "Switch to main branch")
        if state.has_upstream:
            self.runner.run(["git", "fetch", state.upstream_remote], "Fetch upstream")
            self._rebase(state.upstream_main)

        console.print(f"Deleting local branch '{branch}'...")
        try:
            self.runner.run(["git", "branch", "-D", branch], "Delete local branch")
        except CommandFailedError:
            console.print("[yellow]⚠ Could not delete local branch. It might have unmerged changes.[/yellow]")

        console.print(f"Deleting remote branch '{state.fork_remote}/{branch}'...")
        try:
            self.runner.run(["git", "push", state.fork_remote, "--delete", branch], "Delete remote branch")
        except CommandFailedError:
            console.print("[yellow]⚠ Could not delete remote branch. It might be protected or already gone.[/yellow]")

        self.runner.run(["git", "remote", "prune", state.fork_remote], "Prune remote references",
                        check=False)

        console.print("[green]✓ Cleanup complete.[/green]")
        return True

    # ========== Help & Menu ==========

    def show_help(self) -> None:
        console.print(escape(HELP_TEXT), highlight=False)

    def menu(self) -> None:
        """
        Loop: re-detect state, show the options, run the chosen one.

        Feature-branch options are listed but refused while on main.
        """
        items = {item.key: item for item in MENU_ITEMS}

        while True:
            click.clear()
            state = self.refresh()

            console.print("[blue]🧱 Git Workflow Helper 🧱[/blue]")
            console.print("---------------------------------")
            console.print(f"  Current Branch: [green]{state.current_branch}[/green]")
            if state.is_dirty:
                console.print("  [yellow]Working tree is dirty![/yellow]")
            console.print("---------------------------------")
            for item in MENU_ITEMS:
                label = f"{item.label} ({state.fork_remote})" if item.command is Command.PUSH else item.label
                if item.feature_only and state.is_protected:
                    console.print(f"  {item.key}. (Unavailable on main)")
                else:
                    console.print(f"  {item.key.upper()}. [{item.style}]{escape(label)}[/{item.style}]")
            console.print("---------------------------------")

            choice = click.prompt(click.style("? Select an option [1-8, Q]:", fg="magenta"),
                                  default="", show_default=False).strip().lower()
            item = items.get(choice)

            if item is None:
                console.print("[yellow]⚠ Invalid option.[/yellow]")
            elif item.command is Command.QUIT:
                console.print("Exiting.")
                return
            elif item.feature_only and state.is_protected:
                console.print("[yellow]⚠ Operation not available on main.[/yellow]")
            elif item.command is Command.CLEAN:
                dispatch(self, Command.CLEAN, state.current_branch)
            else:
                dispatch(self, item.command)

            if choice:
                click.prompt("Press Enter to continue...", default="", show_default=False,
                             prompt_suffix="")


def dispatch(manager: ForkWorkflowManager, command: Command, *args, **kwargs):
    """Run one workflow command. The CLI and the menu both come through here."""
    handlers = {
        Command.CONFIGURE: manager.configure,
        Command.STATUS: manager.status,
        Command.SYNC: manager.sync,
        Command.NEW: manager.new_branch,
        Command.COMMIT: manager.commit,
        Command.PUSH: manager.push,
        Command.PR: manager.pull_request,
        Command.CLEAN: manager.clean,
        Command.HELP: manager.show_help,
    }
    handler = handlers.get(command)
    if handler is None:
        raise ValueError(f"Command {command.value!r} cannot be dispatched")
    return handler(*args, **kwargs)


@contextmanager
def fatal_errors() -> Iterator[None]:
    """Print a ForkflowError and exit 1."""
    try:
        yield
    except ForkflowError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        sys.exit(1)


# ========== CLI Interface ==========

# Commands that may run before the config file exists
SETUP_COMMANDS = {"init", "config", "help"}


@click.group(invoke_without_command=True)
@click.option('--debug', '-d', is_flag=True, help='Enable debug output (shows git/gh commands)')
@click.option('--dry-run', '-n', is_flag=True, help='Preview commands without execution')
@click.option('--save-history', is_flag=True, help='Save command history to .git/.ffw_history.json')
@click.option('--interactive/--no-interactive', default=None,
              help='Force prompting on or off (default: detect a terminal)')
@click.option('--force', '-f', is_flag=True, help='Continue on a dirty working tree without prompting')
@click.version_option(__version__, prog_name=PROG)
@click.pass_context
def cli(ctx, debug, dry_run, save_history, interactive, force):
    """
    Fork-based pull request workflow helper.

    Run without a command for the interactive menu.

    Common workflow:

        ffw sync                   # Update main from upstream

        ffw new fix-login          # Create a feature branch

        # ... make changes ...

        ffw commit "Fix login"     # Stage and commit

        ffw push                   # Push to your fork

        ffw pr                     # Open the pull request

        ffw clean                  # Clean up after merge
    """
    if interactive is None:
        interactive = is_interactive_terminal()

    runner = CommandRunner(debug=debug, dry_run=dry_run)
    manager = ForkWorkflowManager(runner=runner, interactive=interactive, force=force)
    ctx.obj = manager

    if save_history:
        ctx.call_on_close(manager.save_history)

    subcommand = ctx.invoked_subcommand

    with fatal_errors():
        if not runner.which("git"):
            raise ForkflowError("Command 'git' not found, but it is required. Please install it.")

        if subcommand is None:
            if not interactive:
                console.print("[yellow]⚠ Not an interactive terminal. Showing help.[/yellow]")
                manager.show_help()
                raise ForkflowError("Please provide a command.")
            if not manager.has_config():
                console.print("[yellow]⚠ Welcome! Config file not found.[/yellow]")
                manager.configure()
            manager.menu()
        elif subcommand not in SETUP_COMMANDS and not manager.has_config():
            console.print("[yellow]⚠ Config file not found. Running initial setup first...[/yellow]")
            manager.configure()


@cli.command('init')
@click.option('--fork-remote', help='Name of your fork remote')
@click.option('--upstream-remote', help='Name of the upstream remote')
@click.option('--main-branch', help='Default main branch name')
@click.option('--github-user', help='Your GitHub username (for PR URL fallback)')
@click.pass_obj
def init(manager, fork_remote, upstream_remote, main_branch, github_user):
    """Run first-time setup (or re-configure)."""
    with fatal_errors():
        dispatch(manager, Command.CONFIGURE, fork_remote=fork_remote,
                 upstream_remote=upstream_remote, main_branch=main_branch,
                 github_user=github_user)


@cli.command()
@click.pass_obj
def status(manager):
    """Show status overview and next-action suggestion."""
    with fatal_errors():
        dispatch(manager, Command.STATUS)


@cli.command()
@click.option('--push/--no-push', default=None, help='Push main to your fork afterwards (default: ask)')
@click.pass_obj
def sync(manager, push):
    """Fetch and rebase local main from upstream/main."""
    with fatal_errors():
        dispatch(manager, Command.SYNC, push=push)


@cli.command('new')
@click.argument('name', nargs=-1)
@click.pass_obj
def new(manager, name):
    """Create a new feature branch (syncs main first)."""
    with fatal_errors():
        dispatch(manager, Command.NEW, " ".join(name) or None)


@cli.command()
@click.argument('message', required=False)
@click.option('--amend/--no-amend', default=None, help='Amend the previous commit (default: ask)')
@click.pass_obj
def commit(manager, message, amend):
    """Stage and commit changes (interactive if no msg)."""
    with fatal_errors():
        dispatch(manager, Command.COMMIT, message, amend=amend)


@cli.command()
@click.pass_obj
def push(manager):
    """Push current branch to fork (origin)."""
    with fatal_errors():
        dispatch(manager, Command.PUSH)


@cli.command('pr')
@click.option('--web/--no-web', default=True, help="Open the PR form in a browser (gh only)")
@click.pass_obj
def pr(manager, web):
    """Create a Pull Request (uses 'gh' or prints URL)."""
    with fatal_errors():
        dispatch(manager, Command.PR, web=web)


@cli.command('clean')
@click.argument('branch', required=False)
@click.option('--yes', '-y', 'assume_yes', is_flag=True, help='Skip the confirmation prompt')
@click.pass_obj
def clean(manager, branch, assume_yes):
    """Delete branch locally and on fork (default: current)."""
    with fatal_errors():
        dispatch(manager, Command.CLEAN, branch, assume_yes=assume_yes)


@cli.command('help')
@click.pass_obj
def help_(manager):
    """Show this help message."""
    dispatch(manager, Command.HELP)


# Aliases
cli.add_command(init, 'config')
cli.add_command(new, 'feature')
cli.add_command(new, 'fix')
cli.add_command(pr, 'pull-request')
cli.add_command(clean, 'cleanup')


if __name__ == "__main__":
    cli()
