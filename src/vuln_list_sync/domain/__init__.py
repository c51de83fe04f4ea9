"""Domain models, target registry and selection logic."""

from .models import FinalizeResult, GroupResult, Outcome, RepoGroup, Status, Target
from .registry import REGISTRY, SLOW_GROUP, TargetRegistry
from .selection import expand_token, select_targets, split_expression

__all__ = [
    "Target",
    "RepoGroup",
    "Status",
    "Outcome",
    "FinalizeResult",
    "GroupResult",
    "REGISTRY",
    "SLOW_GROUP",
    "TargetRegistry",
    "expand_token",
    "select_targets",
    "split_expression",
]
