"""Application services orchestrating domain and core capabilities."""

from .execution import RepoGroupManager, TargetExecutor, run_groups, run_update
from .summary import RunReport, RunSummary, print_summary

__all__ = [
    "RepoGroupManager",
    "TargetExecutor",
    "RunReport",
    "RunSummary",
    "print_summary",
    "run_groups",
    "run_update",
]
