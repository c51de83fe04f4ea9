"""Working copies of destination repositories.

``GitWorkspace`` wraps the handful of git operations the orchestrator needs:
clone-or-pull, pending change detection, commit, push and path revert.
``PlainWorkspace`` is the local-cache variant with no version control.
"""

import os
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from ..errors import GitCommandError, PrepareError, RevertError
from ..infra.logger import log_error, log_info, log_success, log_warning
from .process_control import run_tracked

DEFAULT_BRANCHES = ("main", "master")


def _extract_git_failure_reason(stderr_text: str) -> str:
    """Map common git stderr to concise reason tags."""
    text = (stderr_text or "").lower()
    if not text:
        return "unknown"
    if "not a git repository" in text:
        return "not_git_repo"
    if "couldn't find remote ref" in text or "no such remote" in text:
        return "remote_ref_missing"
    if "your local changes" in text or "would be overwritten" in text:
        return "local_changes_conflict"
    if "not possible to fast-forward" in text or "cannot fast-forward" in text:
        return "not_fast_forward"
    if "[rejected]" in text or "failed to push some refs" in text:
        return "push_rejected"
    if "could not resolve host" in text or "failed to connect" in text or "timed out" in text:
        return "network_error"
    if "authentication failed" in text or "permission denied" in text:
        return "auth_error"
    if "pathspec" in text and "did not match" in text:
        return "pathspec_mismatch"
    return "unknown"


def _git_env() -> dict:
    env = dict(os.environ)
    # Never block on a credential prompt.
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env


def run_git(args: Sequence[str], action: str, cwd: Optional[Path] = None) -> subprocess.CompletedProcess:
    """Run ``git <args>`` and raise ``GitCommandError`` on a non-zero exit."""
    command = ["git"]
    if cwd is not None:
        command += ["-C", str(cwd)]
    command += list(args)

    try:
        result = run_tracked(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            env=_git_env(),
        )
    except OSError as exc:
        raise GitCommandError(action, command, -1, str(exc), "git_unavailable") from exc

    if result.returncode != 0:
        raise GitCommandError(
            action,
            command,
            result.returncode,
            result.stderr,
            _extract_git_failure_reason(result.stderr),
        )
    return result


class GitWorkspace:
    """A git working copy of one destination repository."""

    versioned = True

    def __init__(
        self,
        path: Path,
        remote_url: str,
        branches: Sequence[str] = DEFAULT_BRANCHES,
        author_name: str = "Vulnerability Updater",
        author_email: str = "vuln-updater@example.com",
    ):
        self.path = Path(path)
        self.remote_url = remote_url
        self.branches = tuple(branches) or DEFAULT_BRANCHES
        self.author_name = author_name
        self.author_email = author_email

    def _git(self, *args: str, action: str) -> subprocess.CompletedProcess:
        return run_git(args, action, cwd=self.path)

    def is_materialized(self) -> bool:
        return (self.path / ".git").exists()

    def ensure(self) -> bool:
        """Clone when absent, pull when present.

        Returns ``True`` when the working copy reflects the remote. A failed
        pull leaves the last-known state in place and returns ``False``; a
        failed clone raises ``PrepareError``.
        """
        if self.is_materialized():
            return self._refresh()
        self._materialize()
        return True

    def _materialize(self) -> None:
        try:
            occupied = self.path.exists() and any(self.path.iterdir())
            if not occupied:
                self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            log_error(f"cannot prepare {self.path}: {exc}")
            raise PrepareError(f"cannot prepare {self.path}: {exc}") from exc
        if occupied:
            raise PrepareError(f"{self.path} exists but is not a git repository")

        log_info(f"cloning {self.remote_url} -> {self.path}")
        try:
            run_git(["clone", "--quiet", self.remote_url, str(self.path)], "clone")
        except GitCommandError as exc:
            log_error(f"clone failed [{exc.reason}]: {self.path.name}")
            self._cleanup_failed_clone()
            raise PrepareError(f"clone of {self.path.name} failed [{exc.reason}]") from exc
        log_success(f"cloned: {self.path.name}")

    def _cleanup_failed_clone(self) -> None:
        if not self.path.exists():
            return
        try:
            shutil.rmtree(self.path)
        except OSError as exc:
            log_warning(f"could not remove partial clone {self.path}: {exc}")

    def _refresh(self) -> bool:
        log_info(f"pulling latest changes: {self.path.name}")
        try:
            self._git("remote", "set-url", "origin", self.remote_url, action="remote set-url")
        except GitCommandError as exc:
            log_warning(f"could not update remote url [{exc.reason}]: {self.path.name}")

        last_error: Optional[GitCommandError] = None
        for branch in self.branches:
            try:
                self._git("pull", "--ff-only", "--no-rebase", "--quiet", "origin", branch, action="pull")
                log_success(f"up to date with origin/{branch}: {self.path.name}")
                return True
            except GitCommandError as exc:
                last_error = exc

        reason = last_error.reason if last_error else "unknown"
        log_warning(f"pull failed [{reason}], continuing with local state: {self.path.name}")
        return False

    def has_changes(self) -> bool:
        result = self._git("status", "--porcelain", action="status")
        return bool(result.stdout.strip())

    def commit_all(self, message: str) -> None:
        self._git("add", "--all", action="add")
        self._git(
            "-c", f"user.name={self.author_name}",
            "-c", f"user.email={self.author_email}",
            "commit", "--quiet", "-m", message,
            action="commit",
        )

    def publish(self) -> str:
        """Push HEAD to the first branch that accepts it."""
        last_error: Optional[GitCommandError] = None
        for branch in self.branches:
            try:
                self._git("push", "--quiet", "origin", f"HEAD:{branch}", action="push")
                return branch
            except GitCommandError as exc:
                last_error = exc
        if last_error is None:
            raise GitCommandError("push", ["git", "push"], -1, reason="no_branches")
        raise last_error

    def _tracked_paths(self, subdir: str) -> List[str]:
        result = self._git("ls-files", "--", subdir, action="ls-files")
        return [line for line in result.stdout.splitlines() if line.strip()]

    def revert_path(self, subdir: str) -> None:
        """Restore ``subdir`` to HEAD and drop untracked files beneath it."""
        try:
            if self._tracked_paths(subdir):
                self._git("checkout", "HEAD", "--", subdir, action="checkout")
            self._git("clean", "-fdq", "--", subdir, action="clean")
        except GitCommandError as exc:
            raise RevertError(f"revert of {subdir}/ in {self.path.name} failed [{exc.reason}]") from exc

    def reset_all(self) -> None:
        """Discard every pending change in the working copy."""
        try:
            self._git("reset", "--hard", "--quiet", "HEAD", action="reset")
            self._git("clean", "-fdq", action="clean")
        except GitCommandError as exc:
            raise RevertError(f"reset of {self.path.name} failed [{exc.reason}]") from exc


class PlainWorkspace:
    """Unversioned directory used in local-cache mode."""

    versioned = False

    def __init__(self, path: Path):
        self.path = Path(path)

    def ensure(self) -> bool:
        try:
            self.path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PrepareError(f"cannot create {self.path}: {exc}") from exc
        return True

    def has_changes(self) -> bool:
        return False

    def revert_path(self, subdir: str) -> None:
        raise RevertError(f"{self.path}/{subdir} is not versioned, partial writes are kept")

    def reset_all(self) -> None:
        raise RevertError(f"{self.path} is not versioned, partial writes are kept")
