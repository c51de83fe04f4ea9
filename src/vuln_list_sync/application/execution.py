"""Grouped update runs: prepare, execute, revert, commit, report."""

from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..core.failed_targets import clear_failed_targets, save_failed_targets
from ..core.process_control import (
    clear_shutdown_request,
    install_signal_handlers,
    is_shutdown_requested,
    raise_if_shutdown_requested,
    restore_signal_handlers,
)
from ..core.run_lock import RunLock
from ..core.updater import check_updater, run_updater
from ..core.workspace import GitWorkspace, PlainWorkspace
from ..domain.models import FinalizeResult, GroupResult, Outcome, RepoGroup, Target
from ..domain.registry import REGISTRY, TargetRegistry
from ..domain.selection import select_targets
from ..errors import GitCommandError, PrepareError, RevertError, RunInterrupted
from ..infra.logger import log_error, log_info, log_success, log_warning
from ..infra.settings import Settings
from .summary import RunReport, RunSummary

UpdaterRunner = Callable[[Path, str, Path], int]


def build_commit_message(group: RepoGroup, outcomes: Sequence[Outcome]) -> str:
    """Commit message for a group: complete, or partial with the failure count."""
    title = group.title or group.group_id
    failed = [outcome for outcome in outcomes if not outcome.succeeded]
    if not failed:
        return f"{title} (complete)"

    lines = [f"{title} (partial - {len(failed)} of {len(outcomes)} sources failed)", ""]
    for outcome in failed:
        line = f"failed: {outcome.target_id}"
        if outcome.revert_error:
            line += " (not reverted)"
        lines.append(line)
    return "\n".join(lines)


class TargetExecutor:
    """Runs one target and reverts its writes when it fails."""

    def __init__(self, updater: Path, runner: UpdaterRunner = run_updater):
        self.updater = Path(updater)
        self.runner = runner

    def run(self, target: Target, workspace) -> Outcome:
        log_info(f"updating {target.target_id} ({target.description})")
        code = self.runner(self.updater, target.target_id, workspace.path)
        if code == 0:
            log_success(f"completed: {target.target_id}")
            return Outcome.success(target)

        log_error(f"update failed for {target.target_id} (exit {code})")
        revert_error = self._revert(target, workspace)
        return Outcome.failure(target, f"exit_{code}", revert_error)

    def _revert(self, target: Target, workspace) -> str:
        """Reset the owned subdirectory, or the whole copy for a sole occupant."""
        scope = f"{target.owned_subdir}/" if target.owned_subdir else "working copy"
        try:
            if target.owned_subdir:
                workspace.revert_path(target.owned_subdir)
            else:
                workspace.reset_all()
        except RevertError as exc:
            log_warning(f"revert failed for {target.target_id}: {exc}")
            return str(exc)
        log_info(f"reverted {scope} of {target.group_id} after {target.target_id} failed")
        return ""


class RepoGroupManager:
    """Prepares each group's working copy and commits it once at the end."""

    def __init__(self, settings: Settings, workspace_factory: Optional[Callable] = None):
        self.settings = settings
        self.workspace_factory = workspace_factory or self._default_workspace

    def _default_workspace(self, group: RepoGroup):
        path = group.local_path(self.settings.repos_dir)
        if self.settings.local_mode:
            return PlainWorkspace(path)
        return GitWorkspace(
            path,
            self.settings.remote_url(group.group_id),
            branches=self.settings.branches,
            author_name=self.settings.author_name,
            author_email=self.settings.author_email,
        )

    def prepare(self, group: RepoGroup):
        """Return a usable working copy or raise ``PrepareError``."""
        log_info(f"========== {group.group_id} ==========")
        workspace = self.workspace_factory(group)
        workspace.ensure()
        return workspace

    def finalize(self, group: RepoGroup, workspace, outcomes: Sequence[Outcome]) -> GroupResult:
        failed = sum(1 for outcome in outcomes if not outcome.succeeded)
        total = len(outcomes)

        if not workspace.versioned:
            if failed == 0:
                log_success(f"{group.group_id}: all {total} source(s) updated")
            elif failed < total:
                log_warning(f"{group.group_id}: partial update, {total - failed}/{total} sources succeeded")
            else:
                log_error(f"{group.group_id}: all {total} source(s) failed")
            return GroupResult(group.group_id, FinalizeResult.SKIPPED)

        try:
            dirty = workspace.has_changes()
        except GitCommandError as exc:
            log_error(f"{group.group_id}: cannot inspect working copy [{exc.reason}]")
            return GroupResult(group.group_id, FinalizeResult.FAILED, error=str(exc))

        if failed == total:
            if dirty:
                log_warning(f"{group.group_id}: every source failed, leaving pending changes uncommitted")
                return GroupResult(group.group_id, FinalizeResult.ABANDONED, error="uncommitted changes left behind")
            log_info(f"{group.group_id}: every source failed, nothing to commit")
            return GroupResult(group.group_id, FinalizeResult.NO_CHANGES)

        if not dirty:
            log_info(f"{group.group_id}: no changes detected")
            return GroupResult(group.group_id, FinalizeResult.NO_CHANGES)

        message = build_commit_message(group, outcomes)
        log_info(f"{group.group_id}: committing changes")
        try:
            workspace.commit_all(message)
            branch = workspace.publish()
        except GitCommandError as exc:
            log_error(f"{group.group_id}: commit/push failed [{exc.reason}]")
            return GroupResult(group.group_id, FinalizeResult.FAILED, message, str(exc))

        if failed:
            log_warning(f"{group.group_id}: pushed partial update to {branch} ({failed} of {total} failed)")
        else:
            log_success(f"{group.group_id}: pushed update to {branch}")
        return GroupResult(group.group_id, FinalizeResult.COMMITTED, message)


def run_groups(
    run_set: Sequence[str],
    registry: TargetRegistry,
    manager: RepoGroupManager,
    executor: TargetExecutor,
) -> RunReport:
    """Run every selected target group by group, in registry priority order."""
    summary = RunSummary(run_set)
    selected = set(run_set)
    group_results: List[GroupResult] = []
    interrupted = False

    try:
        for group_id in registry.all_group_ids():
            members = [target for target in registry.list_group(group_id) if target.target_id in selected]
            if not members:
                continue
            group = registry.group(group_id)

            raise_if_shutdown_requested(f"before {group_id}")
            try:
                workspace = manager.prepare(group)
            except PrepareError as exc:
                log_error(f"{group_id}: prepare failed, skipping {len(members)} target(s): {exc}")
                for target in members:
                    summary.record(Outcome.failure(target, "prepare_failed"))
                group_results.append(GroupResult(group_id, FinalizeResult.FAILED, error=str(exc)))
                continue

            outcomes: List[Outcome] = []
            for target in members:
                raise_if_shutdown_requested(f"before {target.target_id}")
                outcome = executor.run(target, workspace)
                summary.record(outcome)
                outcomes.append(outcome)

            group_results.append(manager.finalize(group, workspace, outcomes))
    except RunInterrupted:
        interrupted = True
        pending = summary.pending()
        log_warning(f"{len(pending)} remaining target(s) marked failed")
        for target_id in pending:
            summary.record(Outcome.failure(registry.lookup(target_id), "interrupted"))
    else:
        # Signal delivered during the last target or the last finalize.
        if is_shutdown_requested():
            log_warning("interrupt received after the last target")
            interrupted = True

    return summary.report(interrupted=interrupted, groups=group_results)


def resolve_run_set(expression: Optional[str], registry: TargetRegistry = REGISTRY) -> List[str]:
    """Selection with unknown tokens reported as warnings."""
    run_set, unknown = select_targets(expression, registry)
    for token in unknown:
        log_warning(f"unknown target or alias skipped: {token}")
    log_info(f"selected {len(run_set)} target(s): {', '.join(run_set)}")
    return run_set


def run_update(
    settings: Settings,
    expression: Optional[str] = None,
    registry: TargetRegistry = REGISTRY,
    runner: UpdaterRunner = run_updater,
    workspace_factory: Optional[Callable] = None,
) -> RunReport:
    """Full run: select, check the updater, lock, execute, report.

    Selection and config errors propagate before the lock is taken;
    ``RunLockedError`` propagates without touching any working copy.
    """
    clear_shutdown_request()
    run_set = resolve_run_set(settings.targets if expression is None else expression, registry)
    updater = check_updater(settings.updater)

    previous_handlers = install_signal_handlers()
    try:
        with RunLock(settings.lock_path):
            clear_failed_targets(settings.failed_targets_path)
            report = run_groups(
                run_set,
                registry,
                RepoGroupManager(settings, workspace_factory),
                TargetExecutor(updater, runner),
            )
            save_failed_targets(report.failed, settings.failed_targets_path)
    finally:
        restore_signal_handlers(previous_handlers)
    return report
