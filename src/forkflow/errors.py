"""Exceptions for forkflow. Every one of them is fatal at the CLI (exit 1)."""

from typing import Optional


class ForkflowError(Exception):
    """Base exception for all forkflow errors."""
    pass


class NotARepositoryError(ForkflowError):
    """Raised when run outside a Git work tree."""

    def __init__(self, path: Optional[str] = None):
        self.path = path
        message = "Not a Git repository. Exiting."
        if path:
            message = f"Not a Git repository: {path}"
        super().__init__(message)


class MissingRemoteError(ForkflowError):
    """Raised when a required remote is not configured."""

    def __init__(self, remote: str, hint: Optional[str] = None):
        self.remote = remote
        message = f"Remote '{remote}' not found."
        if hint:
            message += f" {hint}"
        super().__init__(message)


class DirtyTreeError(ForkflowError):
    """Raised when the working tree has uncommitted changes."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message or "Working tree is dirty. Stash or commit changes first, or use --force."
        )


class ProtectedBranchError(ForkflowError):
    """Raised when a feature-branch operation targets the main branch."""

    def __init__(self, branch: str, operation: Optional[str] = None):
        self.branch = branch
        self.operation = operation
        if operation:
            message = f"Cannot {operation} the '{branch}' branch!"
        else:
            message = (f"This operation is not allowed on the '{branch}' branch. "
                       "Please create a feature branch first.")
        super().__init__(message)


class InvalidBranchNameError(ForkflowError):
    """Raised when a branch name is empty after sanitization."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Invalid branch name provided: '{name}'")


class CommandFailedError(ForkflowError):
    """Raised when an external command exits non-zero."""

    def __init__(self, command: str, returncode: int, stderr: Optional[str] = None,
                 hint: Optional[str] = None):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        self.hint = hint

        message = f"Command '{command}' failed with exit code {returncode}"
        if stderr and stderr.strip():
            message += f": {stderr.strip()}"
        if hint:
            message += f"\n{hint}"
        super().__init__(message)


class AbortedError(ForkflowError):
    """Raised when the operator aborts at a guardrail prompt."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)
