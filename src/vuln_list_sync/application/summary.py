"""Per-target outcome accounting and the end-of-run report."""

import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..domain.models import GroupResult, Outcome
from ..infra.logger import log_error, log_info, log_success, log_warning

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_LOCKED = 3
EXIT_INTERRUPTED = 130


@dataclass(frozen=True)
class RunReport:
    succeeded: List[str]
    failed: List[str]
    reasons: Dict[str, str] = field(default_factory=dict)
    groups: List[GroupResult] = field(default_factory=list)
    interrupted: bool = False
    duration: int = 0

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def exit_code(self) -> int:
        if self.interrupted:
            return EXIT_INTERRUPTED
        return EXIT_FAILED if self.failed else EXIT_OK

    def to_dict(self) -> Dict[str, object]:
        return {
            "succeeded": list(self.succeeded),
            "failed": list(self.failed),
            "reasons": dict(self.reasons),
            "interrupted": self.interrupted,
            "exit_code": self.exit_code,
            "duration": self.duration,
        }


class RunSummary:
    """Collects exactly one outcome per target of the run set."""

    def __init__(self, run_set: Sequence[str]):
        self.run_set = list(run_set)
        self._outcomes: Dict[str, Outcome] = {}
        self._started = time.time()

    def record(self, outcome: Outcome) -> None:
        if outcome.target_id not in self.run_set:
            raise ValueError(f"{outcome.target_id} is not part of this run")
        if outcome.target_id in self._outcomes:
            raise ValueError(f"outcome for {outcome.target_id} already recorded")
        self._outcomes[outcome.target_id] = outcome

    def outcome(self, target_id: str) -> Optional[Outcome]:
        return self._outcomes.get(target_id)

    def pending(self) -> List[str]:
        return [target_id for target_id in self.run_set if target_id not in self._outcomes]

    def report(self, interrupted: bool = False, groups: Optional[List[GroupResult]] = None) -> RunReport:
        pending = self.pending()
        if pending:
            raise ValueError(f"no outcome recorded for: {', '.join(pending)}")

        succeeded = [tid for tid in self.run_set if self._outcomes[tid].succeeded]
        failed = [tid for tid in self.run_set if not self._outcomes[tid].succeeded]
        return RunReport(
            succeeded=succeeded,
            failed=failed,
            reasons={tid: self._outcomes[tid].reason for tid in failed},
            groups=list(groups or []),
            interrupted=interrupted,
            duration=int(time.time() - self._started),
        )


def print_summary(report: RunReport) -> None:
    """输出最终统计"""
    hours = report.duration // 3600
    minutes = (report.duration % 3600) // 60
    seconds = report.duration % 60

    print()
    log_info("========== Update Summary ==========")
    log_info(f"Total targets: {report.total}")
    log_success(f"Succeeded: {len(report.succeeded)}")
    for target_id in report.succeeded:
        log_success(f"  + {target_id}")

    if report.failed:
        log_error(f"Failed: {len(report.failed)}")
        for target_id in report.failed:
            log_error(f"  - {target_id} [{report.reasons.get(target_id) or 'unknown'}]")
    else:
        log_info("Failed: 0")

    for group in report.groups:
        detail = f" - {group.error}" if group.error else ""
        log_info(f"Group {group.group_id}: {group.finalize.value}{detail}")

    if report.interrupted:
        log_warning("Run was interrupted before all targets were attempted")

    log_info(f"Duration: {hours}h {minutes}m {seconds}s")
    log_info("====================================")
