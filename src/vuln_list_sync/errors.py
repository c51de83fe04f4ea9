"""Exception hierarchy shared across layers."""

from typing import Sequence


class SyncError(Exception):
    """Base class for orchestrator errors."""


class ConfigError(SyncError):
    """Required setting missing or invalid."""


class SelectionError(SyncError):
    """Selection expression could not produce a run set."""


class EmptySelection(SelectionError):
    """Selection resolved to zero targets."""


class RunLockedError(SyncError):
    """Another run holds the lock marker."""

    def __init__(self, lock_path, owner: str = ""):
        self.lock_path = lock_path
        self.owner = owner
        detail = f" (owner pid {owner})" if owner else ""
        super().__init__(f"another run is in progress: lock file {lock_path} exists{detail}")


class RunInterrupted(SyncError):
    """Shutdown was requested between target invocations."""


class GitCommandError(SyncError):
    """A git command exited non-zero."""

    def __init__(
        self,
        action: str,
        command: Sequence[str],
        returncode: int,
        stderr: str = "",
        reason: str = "unknown",
    ):
        self.action = action
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr or ""
        self.reason = reason
        super().__init__(f"git {action} failed [{reason}] (exit {returncode})")


class PrepareError(SyncError):
    """Working copy could not be materialized."""


class RevertError(SyncError):
    """Failed target's writes could not be reverted."""
