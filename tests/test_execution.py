import os
import signal
from pathlib import Path

import pytest

from fakes import FakeUpdater, FakeWorkspace
from vuln_list_sync.application.execution import (
    RepoGroupManager,
    TargetExecutor,
    build_commit_message,
    run_groups,
    run_update,
)
from vuln_list_sync.application.summary import EXIT_FAILED, EXIT_INTERRUPTED, EXIT_OK
from vuln_list_sync.core.process_control import request_shutdown
from vuln_list_sync.core.workspace import GitWorkspace
from vuln_list_sync.domain.models import FinalizeResult, Outcome
from vuln_list_sync.domain.registry import TargetRegistry
from vuln_list_sync.errors import ConfigError, EmptySelection, RunLockedError
from vuln_list_sync.infra.settings import Settings

TABLE = [
    ("solo-repo", False, "Solo X", [("solo-x", "Solo X source", "")]),
    ("shared-repo", True, "Shared Updates", [
        ("shared-a", "Shared A", "a"),
        ("shared-b", "Shared B", "b"),
    ]),
]


@pytest.fixture
def registry():
    return TargetRegistry.from_table(TABLE)


@pytest.fixture
def settings(tmp_path):
    return Settings(work_dir=tmp_path / "work", updater=Path("/bin/true"))


def _workspaces(settings):
    return {
        settings.work_dir / "solo-repo": FakeWorkspace(
            settings.work_dir / "solo-repo", {"data.json": "v1"}
        ),
        settings.work_dir / "shared-repo": FakeWorkspace(
            settings.work_dir / "shared-repo", {"a/old.json": "a1", "b/old.json": "b1"}
        ),
    }


def _manager(settings, workspaces):
    return RepoGroupManager(settings, lambda group: workspaces[group.local_path(settings.repos_dir)])


def test_shared_group_failure_reverts_only_owned_subdir(registry, settings):
    workspaces = _workspaces(settings)
    shared = workspaces[settings.work_dir / "shared-repo"]
    runner = FakeUpdater(workspaces, {
        "shared-a": (1, {"a/old.json": "corrupt", "a/new.json": "half"}),
        "shared-b": (0, {"b/old.json": "b2", "b/new.json": "b-new"}),
    })

    report = run_groups(
        ["shared-a", "shared-b"], registry, _manager(settings, workspaces), TargetExecutor(Path("u"), runner)
    )

    assert shared.reverted == ["a"]
    assert shared.committed == {"a/old.json": "a1", "b/old.json": "b2", "b/new.json": "b-new"}
    assert len(shared.commits) == 1
    assert shared.commits[0].startswith("Shared Updates (partial - 1 of 2 sources failed)")
    assert "failed: shared-a" in shared.commits[0]
    assert report.failed == ["shared-a"]
    assert report.succeeded == ["shared-b"]
    assert report.reasons == {"shared-a": "exit_1"}
    assert report.exit_code == EXIT_FAILED


def test_solo_group_failure_resets_and_skips_commit(registry, settings):
    workspaces = _workspaces(settings)
    solo = workspaces[settings.work_dir / "solo-repo"]
    runner = FakeUpdater(workspaces, {"solo-x": (2, {"data.json": "partial"})})

    report = run_groups(["solo-x"], registry, _manager(settings, workspaces), TargetExecutor(Path("u"), runner))

    assert solo.resets == 1
    assert solo.files == {"data.json": "v1"}
    assert solo.commits == []
    assert report.groups[0].finalize is FinalizeResult.NO_CHANGES
    assert report.failed == ["solo-x"]


def test_end_to_end_mixed_groups(registry, settings):
    workspaces = _workspaces(settings)
    solo = workspaces[settings.work_dir / "solo-repo"]
    shared = workspaces[settings.work_dir / "shared-repo"]
    runner = FakeUpdater(workspaces, {
        "solo-x": (1, {"data.json": "broken"}),
        "shared-a": (0, {"a/new.json": "a"}),
        "shared-b": (0, {"b/new.json": "b"}),
    })

    report = run_groups(
        ["solo-x", "shared-a", "shared-b"],
        registry,
        _manager(settings, workspaces),
        TargetExecutor(Path("u"), runner),
    )

    assert report.exit_code != 0
    assert report.succeeded == ["shared-a", "shared-b"]
    assert report.failed == ["solo-x"]
    assert solo.commits == []
    assert shared.commits == ["Shared Updates (complete)"]
    assert shared.pushed == ["main"]


def test_groups_run_in_priority_order_not_selection_order(registry, settings):
    workspaces = _workspaces(settings)
    runner = FakeUpdater(workspaces, {})

    report = run_groups(
        ["shared-b", "solo-x", "shared-a"],
        registry,
        _manager(settings, workspaces),
        TargetExecutor(Path("u"), runner),
    )

    assert runner.calls == ["solo-x", "shared-a", "shared-b"]
    assert report.succeeded == ["shared-b", "solo-x", "shared-a"]
    assert report.exit_code == EXIT_OK


def test_prepare_failure_marks_members_failed_and_continues(registry, settings):
    workspaces = _workspaces(settings)
    workspaces[settings.work_dir / "shared-repo"].fail_prepare = True
    runner = FakeUpdater(workspaces, {"solo-x": (0, {"data.json": "v2"})})

    report = run_groups(
        ["solo-x", "shared-a", "shared-b"],
        registry,
        _manager(settings, workspaces),
        TargetExecutor(Path("u"), runner),
    )

    assert runner.calls == ["solo-x"]
    assert report.succeeded == ["solo-x"]
    assert report.failed == ["shared-a", "shared-b"]
    assert report.reasons == {"shared-a": "prepare_failed", "shared-b": "prepare_failed"}
    assert workspaces[settings.work_dir / "solo-repo"].commits == ["Solo X (complete)"]


def test_unusable_group_path_fails_only_that_group(registry, settings):
    workspaces = _workspaces(settings)
    solo_path = settings.work_dir / "solo-repo"
    solo_path.parent.mkdir(parents=True)
    solo_path.write_text("not a directory", encoding="utf-8")

    def factory(group):
        path = group.local_path(settings.repos_dir)
        if path == solo_path:
            return GitWorkspace(path, "file:///nowhere.git")
        return workspaces[path]

    runner = FakeUpdater(workspaces, {"shared-a": (0, {"a/new.json": "a2"})})
    report = run_groups(
        ["solo-x", "shared-a"], registry, RepoGroupManager(settings, factory), TargetExecutor(Path("u"), runner)
    )

    assert report.reasons == {"solo-x": "prepare_failed"}
    assert report.succeeded == ["shared-a"]
    assert report.groups[0].finalize is FinalizeResult.FAILED
    assert solo_path.read_text(encoding="utf-8") == "not a directory"


def test_revert_failure_is_recorded_and_run_continues(registry, settings):
    workspaces = _workspaces(settings)
    shared = workspaces[settings.work_dir / "shared-repo"]
    shared.fail_revert = True
    runner = FakeUpdater(workspaces, {
        "shared-a": (1, {"a/old.json": "corrupt"}),
        "shared-b": (0, {"b/new.json": "b"}),
    })

    report = run_groups(
        ["shared-a", "shared-b"], registry, _manager(settings, workspaces), TargetExecutor(Path("u"), runner)
    )

    assert runner.calls == ["shared-a", "shared-b"]
    assert report.failed == ["shared-a"]
    assert "failed: shared-a (not reverted)" in shared.commits[0]


def test_all_members_failed_leaves_dirty_copy_uncommitted(registry, settings):
    workspaces = _workspaces(settings)
    shared = workspaces[settings.work_dir / "shared-repo"]
    shared.fail_revert = True
    runner = FakeUpdater(workspaces, {
        "shared-a": (1, {"a/old.json": "corrupt"}),
        "shared-b": (1, {}),
    })

    report = run_groups(
        ["shared-a", "shared-b"], registry, _manager(settings, workspaces), TargetExecutor(Path("u"), runner)
    )

    assert shared.commits == []
    assert report.groups[0].finalize is FinalizeResult.ABANDONED


def test_publish_failure_does_not_affect_other_groups(registry, settings):
    workspaces = _workspaces(settings)
    workspaces[settings.work_dir / "solo-repo"].fail_publish = True
    runner = FakeUpdater(workspaces, {
        "solo-x": (0, {"data.json": "v2"}),
        "shared-a": (0, {"a/new.json": "a"}),
    })

    report = run_groups(
        ["solo-x", "shared-a"], registry, _manager(settings, workspaces), TargetExecutor(Path("u"), runner)
    )

    results = {group.group_id: group.finalize for group in report.groups}
    assert results == {"solo-repo": FinalizeResult.FAILED, "shared-repo": FinalizeResult.COMMITTED}
    assert report.succeeded == ["solo-x", "shared-a"]
    assert report.exit_code == EXIT_OK


def test_interruption_stops_between_targets(registry, settings):
    workspaces = _workspaces(settings)
    shared = workspaces[settings.work_dir / "shared-repo"]

    def runner(updater, target_id, destination):
        workspaces[Path(destination)].write(f"{target_id}.json", "x")
        if target_id == "shared-a":
            request_shutdown()
        return 0

    report = run_groups(
        ["solo-x", "shared-a", "shared-b"],
        registry,
        _manager(settings, workspaces),
        TargetExecutor(Path("u"), runner),
    )

    assert report.interrupted
    assert report.exit_code == EXIT_INTERRUPTED
    assert report.succeeded == ["solo-x", "shared-a"]
    assert report.failed == ["shared-b"]
    assert report.reasons["shared-b"] == "interrupted"
    assert shared.commits == []


def test_interrupt_during_last_target_is_still_reported(registry, settings):
    workspaces = _workspaces(settings)
    shared = workspaces[settings.work_dir / "shared-repo"]

    def runner(updater, target_id, destination):
        workspaces[Path(destination)].write(f"{target_id}.json", "x")
        if target_id == "shared-b":
            request_shutdown()
        return 0

    report = run_groups(
        ["solo-x", "shared-a", "shared-b"],
        registry,
        _manager(settings, workspaces),
        TargetExecutor(Path("u"), runner),
    )

    assert report.interrupted
    assert report.exit_code == EXIT_INTERRUPTED
    assert report.succeeded == ["solo-x", "shared-a", "shared-b"]
    assert report.failed == []
    assert len(shared.commits) == 1


def test_commit_message_variants(registry):
    group = registry.group("shared-repo")
    a, b = registry.list_group("shared-repo")

    assert build_commit_message(group, [Outcome.success(a), Outcome.success(b)]) == "Shared Updates (complete)"
    message = build_commit_message(group, [Outcome.failure(a, "exit_1"), Outcome.success(b)])
    assert message.splitlines()[0] == "Shared Updates (partial - 1 of 2 sources failed)"


def test_run_update_empty_selection_never_takes_lock(registry, settings):
    with pytest.raises(EmptySelection):
        run_update(settings, "unknown-thing", registry=registry)
    assert not settings.lock_path.exists()


def test_run_update_locked_touches_nothing(registry, settings):
    settings.lock_path.parent.mkdir(parents=True)
    settings.lock_path.write_text("999\n", encoding="utf-8")
    calls = []

    with pytest.raises(RunLockedError):
        run_update(
            settings,
            "solo-x",
            registry=registry,
            runner=lambda *args: calls.append(args) or 0,
            workspace_factory=lambda group: calls.append(group),
        )

    assert calls == []
    assert settings.lock_path.read_text(encoding="utf-8") == "999\n"


def test_run_update_unwritable_lock_is_config_error(registry, settings):
    blocker = settings.lock_path.parent
    blocker.parent.mkdir(parents=True, exist_ok=True)
    blocker.write_text("", encoding="utf-8")
    previous_handler = signal.getsignal(signal.SIGTERM)

    with pytest.raises(ConfigError):
        run_update(settings, "solo-x", registry=registry, runner=lambda *args: 0)

    assert signal.getsignal(signal.SIGTERM) is previous_handler


def test_run_update_releases_lock_after_signal(registry, settings):
    workspaces = _workspaces(settings)
    previous_handler = signal.getsignal(signal.SIGINT)

    def runner(updater, target_id, destination):
        assert settings.lock_path.exists()
        os.kill(os.getpid(), signal.SIGINT)
        return 0

    report = run_update(
        settings,
        "all",
        registry=registry,
        runner=runner,
        workspace_factory=lambda group: workspaces[group.local_path(settings.repos_dir)],
    )

    assert report.exit_code == EXIT_INTERRUPTED
    assert report.succeeded == ["solo-x"]
    assert report.failed == ["shared-a", "shared-b"]
    assert not settings.lock_path.exists()
    assert signal.getsignal(signal.SIGINT) is previous_handler


def test_run_update_saves_failed_targets(registry, settings):
    workspaces = _workspaces(settings)
    runner = FakeUpdater(workspaces, {"shared-b": (4, {})})

    report = run_update(
        settings,
        "",
        registry=registry,
        runner=runner,
        workspace_factory=lambda group: workspaces[group.local_path(settings.repos_dir)],
    )

    assert report.failed == ["shared-b"]
    assert settings.failed_targets_path.read_text(encoding="utf-8") == "shared-b\n"
    assert not settings.lock_path.exists()
