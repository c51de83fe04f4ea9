"""Domain data structures."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple


@dataclass(frozen=True)
class Target:
    """One independently fetchable vulnerability data source."""

    target_id: str
    description: str
    group_id: str
    owned_subdir: str = ""

    @property
    def is_shared(self) -> bool:
        return bool(self.owned_subdir)


@dataclass(frozen=True)
class RepoGroup:
    """A destination repository and the targets writing into it."""

    group_id: str
    members: Tuple[str, ...]
    shared: bool = False
    title: str = ""
    slow: bool = False

    def local_path(self, parent_dir: Path) -> Path:
        return Path(parent_dir) / self.group_id


class Status(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome:
    """Result of one target invocation."""

    target_id: str
    group_id: str
    status: Status
    owned_subdir: str = ""
    reason: str = ""
    revert_error: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status is Status.SUCCEEDED

    @classmethod
    def success(cls, target: Target) -> "Outcome":
        return cls(target.target_id, target.group_id, Status.SUCCEEDED, target.owned_subdir)

    @classmethod
    def failure(cls, target: Target, reason: str, revert_error: str = "") -> "Outcome":
        return cls(target.target_id, target.group_id, Status.FAILED, target.owned_subdir, reason, revert_error)


class FinalizeResult(str, Enum):
    COMMITTED = "committed"
    NO_CHANGES = "no_changes"
    ABANDONED = "abandoned"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class GroupResult:
    """What happened to one group's working copy at the end of its run."""

    group_id: str
    finalize: FinalizeResult
    message: Optional[str] = None
    error: str = ""
